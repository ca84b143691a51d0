from flask import current_app, jsonify, request
from flask_jwt_extended import set_access_cookies, unset_jwt_cookies

from . import auth_bp


def auth_flow():
    return current_app.extensions["auth_flow"]


def session_token():
    """The session token from the ``jwtToken`` cookie, else from a Bearer header."""
    token = request.cookies.get(current_app.config["JWT_ACCESS_COOKIE_NAME"])
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header.split(" ", 1)[1].strip() or None
    return None


@auth_bp.route('/register', methods=['POST'])
def register():
    auth_flow().register(request.get_json(silent=True))
    return jsonify({"message": "User registered successfully - OTP code has been sent"}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    auth_flow().request_login(request.get_json(silent=True))
    return jsonify({"message": "OTP code has been sent"}), 200


@auth_bp.route('/otpCheckout', methods=['POST'])
def otp_checkout():
    user, token = auth_flow().verify_otp(request.get_json(silent=True))

    resp = jsonify({
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "isAdmin": user.is_admin,
        "token": token,
    })
    max_age = current_app.config["SESSION_COOKIE_MAX_AGE_DAYS"] * 24 * 60 * 60
    set_access_cookies(resp, token, max_age=max_age)
    return resp, 201


@auth_bp.route('/me/orderOtp', methods=['GET'])
def order_otp():
    auth_flow().request_otp(session_token())
    return jsonify({"message": "OTP code has been sent"}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    resp = jsonify({"message": "Logged out"})
    unset_jwt_cookies(resp)
    return resp, 200
