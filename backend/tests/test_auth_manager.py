from datetime import timedelta

import pytest
from sqlalchemy import delete, func
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from app.auth import hash_password
from app.errors import DuplicateUsername, StorageError
from app.models.base import utcnow
from app.models.token import Token
from app.models.user import User
from app.services.auth_manager import AuthManager


# ==================== create_user ====================


class TestCreateUser:
    def test_returns_id(self, auth_manager: AuthManager):
        user_id = auth_manager.create_user("alice", "hunter2pass")
        assert user_id > 0

    def test_stores_hash_not_plaintext(self, auth_manager: AuthManager, session: Session):
        user_id = auth_manager.create_user("alice", "hunter2pass")
        user = session.get(User, user_id)
        assert user.password_hash != "hunter2pass"
        assert user.password_hash == hash_password("hunter2pass")

    def test_duplicate_username(self, auth_manager: AuthManager):
        first_id = auth_manager.create_user("alice", "hunter2pass")
        with pytest.raises(DuplicateUsername):
            auth_manager.create_user("alice", "otherpass1")

        # Existing user is untouched
        user = auth_manager.get_user_by_id(first_id)
        assert user.username == "alice"
        assert auth_manager.authenticate("alice", "hunter2pass")
        assert auth_manager.authenticate("alice", "otherpass1") is None

    def test_duplicate_leaves_session_usable(self, auth_manager: AuthManager):
        auth_manager.create_user("alice", "hunter2pass")
        with pytest.raises(DuplicateUsername):
            auth_manager.create_user("alice", "hunter2pass")
        assert auth_manager.create_user("bob", "hunter2pass") > 0

    def test_bcrypt_scheme(self, session: Session):
        manager = AuthManager(session, password_scheme="bcrypt")
        user_id = manager.create_user("alice", "hunter2pass")
        assert session.get(User, user_id).password_hash.startswith("$2")
        assert manager.authenticate("alice", "hunter2pass")
        assert manager.authenticate("alice", "wrongpass") is None


# ==================== authenticate ====================


class TestAuthenticate:
    def test_valid_credentials(self, auth_manager: AuthManager):
        auth_manager.create_user("alice", "hunter2pass")
        token = auth_manager.authenticate("alice", "hunter2pass")
        assert isinstance(token, str)
        assert len(token) == 64

    def test_wrong_password(self, auth_manager: AuthManager):
        auth_manager.create_user("alice", "hunter2pass")
        assert auth_manager.authenticate("alice", "wrongpass") is None

    def test_unknown_user(self, auth_manager: AuthManager):
        assert auth_manager.authenticate("nobody", "hunter2pass") is None

    def test_unknown_user_still_verifies_a_hash(self, auth_manager: AuthManager, monkeypatch):
        calls = []

        def spy(plain, hashed):
            calls.append(hashed)
            return False

        monkeypatch.setattr("app.services.auth_manager.verify_password", spy)
        assert auth_manager.authenticate("nobody", "hunter2pass") is None
        assert len(calls) == 1
        assert len(calls[0]) == len(hash_password("x"))

    def test_each_login_issues_new_token(self, auth_manager: AuthManager, session: Session):
        auth_manager.create_user("alice", "hunter2pass")
        first = auth_manager.authenticate("alice", "hunter2pass")
        second = auth_manager.authenticate("alice", "hunter2pass")
        assert first != second
        count = session.exec(select(func.count()).select_from(Token)).one()
        assert count == 2

    def test_failed_login_issues_no_token(self, auth_manager: AuthManager, session: Session):
        auth_manager.create_user("alice", "hunter2pass")
        auth_manager.authenticate("alice", "wrongpass")
        auth_manager.authenticate("nobody", "hunter2pass")
        assert session.exec(select(Token)).all() == []

    def test_token_expiry(self, session: Session):
        manager = AuthManager(session, token_expiry=timedelta(hours=2))
        manager.create_user("alice", "hunter2pass")
        token = manager.authenticate("alice", "hunter2pass")
        row = session.exec(select(Token).where(Token.token == token)).one()
        lifetime = row.expires_at - row.created_at
        assert timedelta(hours=2) - timedelta(seconds=5) < lifetime <= timedelta(hours=2)


# ==================== validate_token / revoke_token ====================


class TestValidateToken:
    def test_valid_token(self, auth_manager: AuthManager):
        user_id = auth_manager.create_user("alice", "hunter2pass")
        token = auth_manager.authenticate("alice", "hunter2pass")
        user = auth_manager.validate_token(token)
        assert user.id == user_id
        assert user.username == "alice"
        assert not hasattr(user, "password_hash")

    def test_unknown_token(self, auth_manager: AuthManager):
        assert auth_manager.validate_token("invalid-token") is None
        assert auth_manager.validate_token("") is None
        assert auth_manager.validate_token("0" * 64) is None

    def test_expired_token(self, session: Session):
        manager = AuthManager(session, token_expiry=timedelta(hours=-1))
        manager.create_user("alice", "hunter2pass")
        token = manager.authenticate("alice", "hunter2pass")
        assert token
        assert manager.validate_token(token) is None

    def test_expired_within_the_current_second(self, session: Session):
        manager = AuthManager(session, token_expiry=timedelta(milliseconds=-400))
        manager.create_user("alice", "hunter2pass")
        token = manager.authenticate("alice", "hunter2pass")
        assert manager.validate_token(token) is None

    def test_sub_second_expiry_boundary(self, auth_manager: AuthManager, session: Session):
        user_id = auth_manager.create_user("alice", "hunter2pass")
        now = utcnow()
        session.add(
            Token(
                user_id=user_id,
                token="just-expired",
                expires_at=now - timedelta(milliseconds=50),
            )
        )
        session.add(
            Token(
                user_id=user_id,
                token="still-valid",
                expires_at=now + timedelta(seconds=2),
            )
        )
        session.commit()

        assert auth_manager.validate_token("just-expired") is None
        assert auth_manager.validate_token("still-valid").id == user_id

    def test_does_not_extend_expiry(self, auth_manager: AuthManager, session: Session):
        auth_manager.create_user("alice", "hunter2pass")
        token = auth_manager.authenticate("alice", "hunter2pass")
        before = session.exec(select(Token.expires_at).where(Token.token == token)).one()
        auth_manager.validate_token(token)
        after = session.exec(select(Token.expires_at).where(Token.token == token)).one()
        assert before == after

    def test_revoke(self, auth_manager: AuthManager):
        auth_manager.create_user("alice", "hunter2pass")
        token = auth_manager.authenticate("alice", "hunter2pass")
        auth_manager.revoke_token(token)
        assert auth_manager.validate_token(token) is None

    def test_revoke_only_affects_one_session(self, auth_manager: AuthManager):
        auth_manager.create_user("alice", "hunter2pass")
        first = auth_manager.authenticate("alice", "hunter2pass")
        second = auth_manager.authenticate("alice", "hunter2pass")
        auth_manager.revoke_token(first)
        assert auth_manager.validate_token(first) is None
        assert auth_manager.validate_token(second).username == "alice"

    def test_revoke_is_idempotent(self, auth_manager: AuthManager):
        auth_manager.revoke_token("never-issued")
        auth_manager.create_user("alice", "hunter2pass")
        token = auth_manager.authenticate("alice", "hunter2pass")
        auth_manager.revoke_token(token)
        auth_manager.revoke_token(token)
        assert auth_manager.validate_token(token) is None

    def test_deleting_user_cascades_to_tokens(self, auth_manager: AuthManager, session: Session):
        user_id = auth_manager.create_user("alice", "hunter2pass")
        auth_manager.authenticate("alice", "hunter2pass")
        auth_manager.authenticate("alice", "hunter2pass")

        session.exec(delete(User).where(User.id == user_id))
        session.commit()

        assert session.exec(select(Token)).all() == []


# ==================== get_user_by_id ====================


def test_get_user_by_id(auth_manager: AuthManager):
    user_id = auth_manager.create_user("alice", "hunter2pass")
    user = auth_manager.get_user_by_id(user_id)
    assert user.id == user_id
    assert user.username == "alice"
    assert user.created_at is not None


def test_get_user_by_id_missing(auth_manager: AuthManager):
    assert auth_manager.get_user_by_id(99999) is None


# ==================== storage failures ====================


def test_read_failures_roll_back(auth_manager: AuthManager, session: Session, monkeypatch):
    rollbacks = []

    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken)
    monkeypatch.setattr(session, "get", broken)
    monkeypatch.setattr(session, "rollback", lambda: rollbacks.append(True))

    with pytest.raises(StorageError):
        auth_manager.authenticate("alice", "hunter2pass")
    with pytest.raises(StorageError):
        auth_manager.validate_token("some-token")
    with pytest.raises(StorageError):
        auth_manager.get_user_by_id(1)
    assert len(rollbacks) == 3
