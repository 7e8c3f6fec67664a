"""User registration, credential verification and bearer-token sessions."""

import logging
import secrets
from datetime import timedelta
from functools import lru_cache

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.auth import generate_token, hash_password, verify_password
from app.errors import DuplicateUsername, StorageError
from app.models.base import utcnow
from app.models.token import Token
from app.models.user import User, UserPublic

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_EXPIRY = timedelta(hours=24)


@lru_cache
def _dummy_hash(scheme: str) -> str:
    """Hash checked against when the username is unknown, so both paths cost the same."""
    return hash_password(secrets.token_hex(16), scheme)


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate key" in message


class AuthManager:
    def __init__(
        self,
        session: Session,
        token_expiry: timedelta = DEFAULT_TOKEN_EXPIRY,
        password_scheme: str = "sha256",
    ):
        self.session = session
        self.token_expiry = token_expiry
        self.password_scheme = password_scheme

    def create_user(self, username: str, password: str) -> int:
        """Create a user and return its id.

        Duplicate usernames are detected by the unique constraint on insert,
        not by a prior lookup.
        """
        user = User(
            username=username,
            password_hash=hash_password(password, self.password_scheme),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if _is_unique_violation(exc):
                raise DuplicateUsername(username) from exc
            raise StorageError("Failed to create user") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to create user") from exc
        self.session.refresh(user)
        logger.info(f"Created user {user.id}")
        return user.id

    def authenticate(self, username: str, password: str) -> str | None:
        """Verify credentials and issue a new token, or return None.

        An unknown username and a wrong password take the same path and
        return the same value.
        """
        try:
            user = self.session.exec(
                select(User).where(User.username == username)
            ).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to look up user") from exc

        if user is None:
            verify_password(password, _dummy_hash(self.password_scheme))
            logger.info("Failed login attempt")
            return None
        if not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            return None

        token = Token(
            user_id=user.id,
            token=generate_token(),
            expires_at=utcnow() + self.token_expiry,
        )
        self.session.add(token)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to issue token") from exc
        logger.info(f"Issued token for user {user.id}")
        return token.token

    def validate_token(self, token: str) -> UserPublic | None:
        """Return the token's user if the token exists and has not expired.

        Expiry is compared against the database clock at millisecond precision.
        Nothing is written.
        """
        try:
            user = self.session.exec(
                select(User)
                .join(Token, Token.user_id == User.id)
                .where(Token.token == token)
                .where(func.julianday(Token.expires_at) > func.julianday("now"))
            ).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to validate token") from exc
        if user is None:
            return None
        return UserPublic.model_validate(user)

    def revoke_token(self, token: str) -> None:
        """Delete the token. Unknown or expired tokens are ignored."""
        try:
            result = self.session.exec(delete(Token).where(Token.token == token))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to revoke token") from exc
        if result.rowcount:
            logger.info("Revoked token")

    def get_user_by_id(self, user_id: int) -> UserPublic | None:
        try:
            user = self.session.get(User, user_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to look up user") from exc
        if user is None:
            return None
        return UserPublic.model_validate(user)
