"""Signed session tokens (HS256 JWTs via Flask-JWT-Extended)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import jwt as pyjwt
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

from cms_auth.errors import BadSignature, ExpiredToken

SESSION_TOKEN_TTL = timedelta(days=5)


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    username: str
    is_admin: bool

    @classmethod
    def for_user(cls, user) -> "SessionClaims":
        return cls(user_id=user.id, username=user.username, is_admin=bool(user.is_admin))


class TokenIssuer:
    """Issues and verifies session tokens.

    The signing key is the application's ``JWT_SECRET_KEY``, fixed when the
    app is created; rotating it invalidates every outstanding token.
    """

    def __init__(self, expires: timedelta = SESSION_TOKEN_TTL):
        self.expires = expires

    def issue(self, claims: SessionClaims) -> str:
        return create_access_token(
            identity=str(claims.user_id),
            expires_delta=self.expires,
            additional_claims={"username": claims.username, "isAdmin": claims.is_admin},
        )

    def verify(self, token: str) -> SessionClaims:
        if not token:
            raise BadSignature()
        try:
            decoded = decode_token(token)
        except pyjwt.ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except (pyjwt.InvalidTokenError, JWTExtendedException) as exc:
            raise BadSignature() from exc

        try:
            return SessionClaims(
                user_id=int(decoded["sub"]),
                username=str(decoded["username"]),
                is_admin=bool(decoded.get("isAdmin", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BadSignature() from exc
