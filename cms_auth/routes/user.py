from flask import jsonify, request

from .auth import auth_flow, session_token
from . import user_bp


@user_bp.route('/me', methods=['GET'])
def me():
    user = auth_flow().authenticate(session_token())
    return jsonify(user.to_dict()), 200


@user_bp.route('/email', methods=['PUT'])
def update_email():
    user = auth_flow().change_email(session_token(), request.get_json(silent=True))
    return jsonify({"id": user.id, "username": user.username, "email": user.email, "isAdmin": user.is_admin}), 200


@user_bp.route('/password', methods=['PUT'])
def update_password():
    auth_flow().change_password(session_token(), request.get_json(silent=True))
    return jsonify({"message": "Password updated successfully"}), 200


@user_bp.route('', methods=['GET'])
def list_users():
    users = auth_flow().list_users(session_token())
    return jsonify([user.to_dict() for user in users]), 200


@user_bp.route('', methods=['POST'])
def create_user():
    user = auth_flow().create_user(session_token(), request.get_json(silent=True))
    return jsonify({"message": "User successfully created", "user": user.to_dict()}), 201


@user_bp.route('/profile/<username>', methods=['GET'])
def get_profile(username):
    user = auth_flow().get_profile(session_token(), username)
    return jsonify(user.to_dict()), 200


@user_bp.route('/profile/<username>', methods=['PUT'])
def update_profile(username):
    user = auth_flow().update_role(session_token(), username, request.get_json(silent=True))
    return jsonify(user.to_dict()), 200


@user_bp.route('/profile/<username>', methods=['DELETE'])
def delete_profile(username):
    auth_flow().delete_account(session_token(), username)
    return jsonify({"message": "The account has been deleted"}), 200
