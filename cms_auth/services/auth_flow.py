"""Two-factor login and credential management.

A user moves through ``Registered -> OtpPending -> Authenticated`` without
that state being stored anywhere: it is implied by the user row, the single
OTP challenge row for the user's email and the session token the client
holds. The controller itself keeps no per-request state, so concurrent
requests for one identity are made safe by the store (atomic upsert of the
challenge, conditional consume) rather than by locks here.

Every public method is one transition. It either commits once or raises an
``AppError``; anything unexpected is rolled back, logged and re-raised as
``InternalError``.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from functools import wraps
from typing import Callable, List, Optional, Tuple

from flask import current_app

from cms_auth.errors import (
    AlreadyExists,
    AlreadyUsed,
    AppError,
    Expired,
    Forbidden,
    InternalError,
    InvalidCode,
    InvalidCredentials,
    NoChallenge,
    NoOpChange,
    NotFound,
    NotRegistered,
    Unauthorized,
)
from cms_auth.logs import mask_email
from cms_auth.models import User
from cms_auth.schemas import (
    CreateUserRequest,
    LoginRequest,
    OtpCheckoutRequest,
    RegisterRequest,
    UpdateEmailRequest,
    UpdatePasswordRequest,
    UpdateUserRequest,
    validate,
)
from cms_auth.services import emails
from cms_auth.services.hasher import SecretHasher
from cms_auth.services.otp import generate_otp
from cms_auth.services.store import CredentialStore
from cms_auth.services.tokens import SessionClaims, TokenIssuer

OTP_TTL = timedelta(minutes=5)


def transition(name: str):
    def decorator(fn):
        @wraps(fn)
        def wrapped(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except AppError:
                self.store.rollback()
                raise
            except Exception as exc:
                self.store.rollback()
                current_app.logger.exception("[auth] %s failed unexpectedly", name)
                raise InternalError() from exc

        return wrapped

    return decorator


class AuthFlowController:
    def __init__(
        self,
        store: CredentialStore,
        hasher: SecretHasher,
        tokens: TokenIssuer,
        notifier,
        otp_generator: Callable[[int], str] = generate_otp,
        otp_length: int = 6,
        otp_ttl: timedelta = OTP_TTL,
        clock: Callable[[], datetime] = datetime.utcnow,
        brand: str = "Qubefyn Support",
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier
        self.otp_generator = otp_generator
        self.otp_length = otp_length
        self.otp_ttl = otp_ttl
        self.clock = clock
        self.brand = brand
        # Checked against when the login identifier is unknown, so a miss
        # costs the same as a wrong password.
        self._dummy_hash = hasher.hash_secret("not-a-real-password")

    # ------------------------------------------------------------------
    # Login flow
    # ------------------------------------------------------------------

    @transition("register")
    def register(self, data) -> User:
        body = validate(RegisterRequest, data)
        self._ensure_available(body.username, body.email)

        user = self.store.create_user(
            username=body.username,
            email=body.email,
            password_hash=self.hasher.hash_secret(body.password),
        )
        code = self._issue_challenge(user)
        self.store.commit()

        current_app.logger.info("[auth] registered user=%s email=%s", user.username, mask_email(user.email))
        self._send_otp(user.email, code)
        return user

    @transition("request_login")
    def request_login(self, data) -> User:
        body = validate(LoginRequest, data)
        if body.email:
            user = self.store.find_user_by_email(body.email)
        else:
            user = self.store.find_user_by_username(body.username)

        if user is None:
            self.hasher.check_secret(body.password, self._dummy_hash)
            raise InvalidCredentials()
        if not self.hasher.check_secret(body.password, user.password_hash):
            current_app.logger.info("[auth] login rejected user=%s", user.username)
            raise InvalidCredentials()

        code = self._issue_challenge(user)
        self.store.commit()

        current_app.logger.info("[auth] login challenge issued user=%s", user.username)
        self._send_otp(user.email, code)
        return user

    @transition("verify_otp")
    def verify_otp(self, data) -> Tuple[User, str]:
        body = validate(OtpCheckoutRequest, data)
        user = self.store.find_user_by_email(body.email)
        if user is None:
            raise NotRegistered()

        self._consume_challenge(user, body.otp_code)
        self.store.commit()

        token = self.tokens.issue(SessionClaims.for_user(user))
        current_app.logger.info("[auth] otp verified, session issued user=%s", user.username)
        return user, token

    # ------------------------------------------------------------------
    # Session-bound operations
    # ------------------------------------------------------------------

    @transition("authenticate")
    def authenticate(self, token: Optional[str]) -> User:
        """Resolve a session token to the user it names, re-read from the store."""
        return self._authenticate(token)

    @transition("request_otp")
    def request_otp(self, token: Optional[str]) -> User:
        user = self._authenticate(token)
        code = self._issue_challenge(user)
        self.store.commit()

        current_app.logger.info("[auth] otp requested user=%s", user.username)
        self._send_otp(user.email, code)
        return user

    @transition("change_email")
    def change_email(self, token: Optional[str], data, username: Optional[str] = None) -> User:
        user = self._authenticate(token)
        body = validate(UpdateEmailRequest, data)
        self._ensure_self(user, username)

        owner = self.store.find_user_by_email(body.email)
        if owner is not None and owner.id != user.id:
            raise AlreadyExists("This email is already in use")

        old_email = user.email
        self._consume_challenge(user, body.otp_code)
        self.store.update_user(user, email=body.email)
        self.store.commit()

        current_app.logger.info(
            "[auth] email changed user=%s from=%s to=%s",
            user.username,
            mask_email(old_email),
            mask_email(user.email),
        )
        return user

    @transition("change_password")
    def change_password(self, token: Optional[str], data, username: Optional[str] = None) -> User:
        user = self._authenticate(token)
        body = validate(UpdatePasswordRequest, data)
        self._ensure_self(user, username)

        if body.new_password == body.current_password:
            raise NoOpChange()
        if not self.hasher.check_secret(body.current_password, user.password_hash):
            raise InvalidCredentials("Current password is not correct")

        self.store.update_user(user, password_hash=self.hasher.hash_secret(body.new_password))
        self.store.commit()

        current_app.logger.info("[auth] password changed user=%s", user.username)
        return user

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    @transition("list_users")
    def list_users(self, token: Optional[str]) -> List[User]:
        actor = self._authenticate(token)
        self._ensure_admin(actor, "only Admins can get users")
        return self.store.list_users()

    @transition("create_user")
    def create_user(self, token: Optional[str], data) -> User:
        actor = self._authenticate(token)
        self._ensure_admin(actor, "only Admins can create new users")
        body = validate(CreateUserRequest, data)
        self._ensure_available(body.username, body.email)

        user = self.store.create_user(
            username=body.username,
            email=body.email,
            password_hash=self.hasher.hash_secret(body.password),
            is_admin=body.is_admin,
        )
        self.store.commit()

        current_app.logger.info("[auth] user=%s created by admin=%s", user.username, actor.username)
        self._notify(user.email, *emails.account_created_email(self.brand, user.username, user.email))
        return user

    @transition("get_profile")
    def get_profile(self, token: Optional[str], username: str) -> User:
        actor = self._authenticate(token)
        target = self._find_target(username)
        if target.id != actor.id and not actor.is_admin:
            raise Forbidden("only the user himself or Admins can get this account")
        return target

    @transition("update_role")
    def update_role(self, token: Optional[str], username: str, data) -> User:
        actor = self._authenticate(token)
        self._ensure_admin(actor, "only Admins can update isAdmin status")
        body = validate(UpdateUserRequest, data)
        target = self._find_target(username)

        self.store.update_user(target, is_admin=body.is_admin)
        self.store.commit()

        current_app.logger.info(
            "[auth] user=%s isAdmin=%s set by admin=%s", target.username, target.is_admin, actor.username
        )
        self._notify(target.email, *emails.role_changed_email(self.brand, target.is_admin))
        return target

    @transition("delete_account")
    def delete_account(self, token: Optional[str], username: str) -> None:
        actor = self._authenticate(token)
        target = self._find_target(username)
        if target.id != actor.id and not actor.is_admin:
            raise Forbidden("only the user himself or Admins can delete this account")

        self.store.delete_user(target)
        self.store.commit()
        current_app.logger.info("[auth] user=%s deleted by user=%s", username, actor.username)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise Unauthorized("no token provided, access denied")
        claims = self.tokens.verify(token)
        user = self.store.find_user_by_id(claims.user_id)
        if user is None or user.username != claims.username:
            raise Unauthorized()
        return user

    def _ensure_self(self, user: User, username: Optional[str]) -> None:
        if username is not None and username != user.username:
            raise Forbidden("only the user himself can change this account")

    def _ensure_admin(self, user: User, message: str) -> None:
        if not user.is_admin:
            raise Forbidden(message)

    def _ensure_available(self, username: str, email: str) -> None:
        if self.store.find_user_by_username(username) or self.store.find_user_by_email(email):
            raise AlreadyExists()

    def _find_target(self, username: str) -> User:
        user = self.store.find_user_by_username(username)
        if user is None:
            raise NotFound("user not found")
        return user

    def _issue_challenge(self, user: User) -> str:
        """Replace whatever challenge the user's email had with a fresh code."""
        code = self.otp_generator(self.otp_length)
        self.store.upsert_otp(
            email=user.email,
            otp_hash=self.hasher.hash_secret(code),
            user_id=user.id,
            created_at=self.clock(),
        )
        return code

    def _consume_challenge(self, user: User, code: str) -> None:
        challenge = self.store.find_otp_by_email(user.email)
        if challenge is None or challenge.user_id != user.id:
            raise NoChallenge()
        if not self.hasher.check_secret(code, challenge.otp_hash):
            raise InvalidCode()
        if self.clock() - challenge.created_at > self.otp_ttl:
            raise Expired()
        if challenge.used_up:
            raise AlreadyUsed()
        # A concurrent verification may have consumed it since the read.
        if not self.store.mark_otp_used(challenge.email, challenge.otp_hash):
            raise AlreadyUsed()

    def _send_otp(self, email: str, code: str) -> None:
        ttl_minutes = max(int(self.otp_ttl.total_seconds() // 60), 1)
        self._notify(email, *emails.otp_email(self.brand, email, code, ttl_minutes))

    def _notify(self, to_email: str, subject: str, text: str, html: str) -> None:
        try:
            self.notifier.send(to_email, subject, text, html)
        except Exception:
            current_app.logger.exception("[auth] could not dispatch %r to %s", subject, mask_email(to_email))
