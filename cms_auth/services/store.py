"""Credential store: the only place the auth core touches the database."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from cms_auth.errors import AlreadyExists
from cms_auth.models import OtpChallenge, User

UPSERT_DIALECTS = ("sqlite", "postgresql", "mysql", "mariadb")


class CredentialStore:
    """Lookups return ``None`` when nothing matches; writes flush but do not commit."""

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def check_dialect(self) -> str:
        """Name of the bound dialect; RuntimeError if it has no single-statement upsert."""
        dialect = self.db.engine.dialect.name
        if dialect not in UPSERT_DIALECTS:
            raise RuntimeError(f"no atomic OTP upsert for database dialect {dialect!r}")
        return dialect

    # -- users -------------------------------------------------------------

    def find_user_by_id(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_user_by_username(self, username: str) -> Optional[User]:
        return self.session.execute(select(User).filter_by(username=username)).scalar_one_or_none()

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.session.execute(select(User).filter_by(email=email)).scalar_one_or_none()

    def list_users(self) -> List[User]:
        return list(self.session.execute(select(User).order_by(User.id)).scalars())

    def create_user(self, username: str, email: str, password_hash: str, is_admin: bool = False) -> User:
        user = User(username=username, email=email, password_hash=password_hash, is_admin=is_admin)
        self.session.add(user)
        self._flush("This user is already registered")
        return user

    def update_user(self, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        self._flush("This email is already in use")
        return user

    def delete_user(self, user: User) -> None:
        self.session.delete(user)
        self.session.flush()

    # -- otp challenges ------------------------------------------------------

    def find_otp_by_email(self, email: str) -> Optional[OtpChallenge]:
        stmt = select(OtpChallenge).filter_by(email=email).execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert_otp(self, email: str, otp_hash: str, user_id: int, created_at: datetime) -> None:
        """Create or overwrite the challenge for ``email`` in a single statement."""
        values = dict(email=email, otp_hash=otp_hash, user_id=user_id, used_up=False, created_at=created_at)
        overwrite = dict(otp_hash=otp_hash, user_id=user_id, used_up=False, created_at=created_at)

        dialect = self.check_dialect()
        if dialect == "sqlite":
            stmt = sqlite_insert(OtpChallenge).values(**values).on_conflict_do_update(
                index_elements=["email"], set_=overwrite
            )
        elif dialect == "postgresql":
            stmt = pg_insert(OtpChallenge).values(**values).on_conflict_do_update(
                index_elements=["email"], set_=overwrite
            )
        else:
            stmt = mysql_insert(OtpChallenge).values(**values).on_duplicate_key_update(**overwrite)
        self.session.execute(stmt)

    def mark_otp_used(self, email: str, otp_hash: str) -> bool:
        """Consume the challenge if it is still the one that was checked and unused."""
        stmt = (
            update(OtpChallenge)
            .where(
                OtpChallenge.email == email,
                OtpChallenge.otp_hash == otp_hash,
                OtpChallenge.used_up.is_(False),
            )
            .values(used_up=True)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    # -- unit of work --------------------------------------------------------

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def _flush(self, conflict_message: str) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise AlreadyExists(conflict_message) from exc
