"""Unit tests for accounts, password hashing and sessions."""

from __future__ import annotations

import time

import pytest

from backend.errors import AuthError, DuplicateError, ValidationError
from backend.services import auth_service


class TestPasswordHashing:
    def test_hash_verifies(self):
        hashed = auth_service.hash_password("s3cret-pass")
        assert hashed.startswith("$argon2id$")
        assert auth_service.verify_password(hashed, "s3cret-pass")
        assert not auth_service.verify_password(hashed, "wrong-pass")

    def test_random_salt_differs(self):
        assert auth_service.hash_password("same") != auth_service.hash_password("same")

    def test_fixed_salt_is_deterministic(self):
        salt = b"0123456789abcdef"
        assert auth_service.hash_password("same", salt=salt) == auth_service.hash_password("same", salt=salt)

    def test_garbage_hash_is_false(self):
        assert auth_service.verify_password("not-a-hash", "pw") is False
        assert auth_service.verify_password("", "pw") is False
        assert auth_service.verify_password(auth_service.hash_password("pw"), "") is False

    def test_unencodable_password_is_false(self):
        hashed = auth_service.hash_password("pw")
        assert auth_service.verify_password(hashed, "\ud800abcdef") is False


class TestSignup:
    def test_creates_user_and_session(self, store):
        user, session = auth_service.signup(store, "  New@Example.com ", "abcdef", " Neo ")
        assert user["email"] == "new@example.com"
        assert user["nickname"] == "Neo"
        assert user["tier"] == "basic"
        assert user["password_hash"] != "abcdef"
        assert session["user_id"] == user["id"]
        assert session["expires_at"] > time.time()

    @pytest.mark.parametrize(
        "email,password,nickname,message",
        [
            ("", "abcdef", "n", "All fields are required."),
            ("a@example.com", "", "n", "All fields are required."),
            ("a@example.com", "abcdef", "   ", "All fields are required."),
            ("a@example.com", "abcde", "n", "Password must be at least 6 characters."),
            ("not-an-email", "abcdef", "n", "Please enter a valid email address."),
        ],
    )
    def test_validation_messages(self, store, email, password, nickname, message):
        with pytest.raises(ValidationError) as exc:
            auth_service.signup(store, email, password, nickname)
        assert exc.value.message == message
        assert exc.value.status_code == 400
        assert store.users.count() == 0

    def test_password_length_checked_before_email(self, store):
        with pytest.raises(ValidationError, match="at least 6"):
            auth_service.signup(store, "bad-email", "123", "n")

    def test_duplicate_email(self, store):
        auth_service.signup(store, "dup@example.com", "abcdef", "A")
        with pytest.raises(DuplicateError) as exc:
            auth_service.signup(store, "DUP@example.com", "abcdef", "B")
        assert exc.value.message == "This email is already registered."
        assert exc.value.status_code == 400


class TestLogin:
    def test_success(self, store):
        created, _ = auth_service.signup(store, "a@example.com", "abcdef", "A")
        user, session = auth_service.login(store, "A@EXAMPLE.COM", "abcdef")
        assert user["id"] == created["id"]
        assert store.sessions.get(session["token"]) is not None

    def test_missing_fields(self, store):
        with pytest.raises(ValidationError, match="Please enter your email and password."):
            auth_service.login(store, "a@example.com", "")

    def test_unknown_email_and_wrong_password_look_alike(self, store):
        auth_service.signup(store, "a@example.com", "abcdef", "A")
        with pytest.raises(AuthError) as wrong_pw:
            auth_service.login(store, "a@example.com", "nope-nope")
        with pytest.raises(AuthError) as unknown:
            auth_service.login(store, "b@example.com", "abcdef")
        assert wrong_pw.value.message == unknown.value.message == "Invalid email or password."
        assert wrong_pw.value.status_code == 401

    def test_unknown_email_still_runs_a_verify(self, store, monkeypatch):
        checked = []
        real_verify = auth_service.verify_password

        def recording_verify(stored_hash, password):
            checked.append(stored_hash)
            return real_verify(stored_hash, password)

        monkeypatch.setattr(auth_service, "verify_password", recording_verify)
        with pytest.raises(AuthError):
            auth_service.login(store, "ghost@example.com", "abcdef")
        assert checked == [auth_service._DUMMY_HASH]

    def test_dummy_hash_never_logs_in_unknown_email(self, store):
        with pytest.raises(AuthError):
            auth_service.login(store, "ghost@example.com", "meddigest-dummy-password")

    def test_signup_rejects_unencodable_password(self, store):
        with pytest.raises(ValidationError, match="Password contains invalid characters."):
            auth_service.signup(store, "a@example.com", "\ud800abcdef", "A")
        assert store.users.get_by_email("a@example.com") is None


class TestSessions:
    def test_resolve_returns_public_user(self, store):
        _, session = auth_service.signup(store, "a@example.com", "abcdef", "A")
        user = auth_service.resolve_session(store, session["token"])
        assert user["email"] == "a@example.com"
        assert "password_hash" not in user

    def test_expired_session_is_anonymous(self, store):
        user, _ = auth_service.signup(store, "a@example.com", "abcdef", "A")
        session = store.sessions.create(user["id"], ttl_seconds=10, now=1000.0)
        assert auth_service.resolve_session(store, session["token"], now=1009.0) is not None
        assert auth_service.resolve_session(store, session["token"], now=1010.0) is None

    def test_unknown_or_empty_token(self, store):
        assert auth_service.resolve_session(store, None) is None
        assert auth_service.resolve_session(store, "") is None
        assert auth_service.resolve_session(store, "forged-token") is None

    def test_session_of_deleted_user(self, store):
        session = store.sessions.create("ghost", ttl_seconds=60)
        assert auth_service.resolve_session(store, session["token"]) is None

    def test_logout_invalidates(self, store):
        _, session = auth_service.signup(store, "a@example.com", "abcdef", "A")
        auth_service.logout(store, session["token"])
        assert auth_service.resolve_session(store, session["token"]) is None
        # Unknown and empty tokens are ignored
        auth_service.logout(store, session["token"])
        auth_service.logout(store, None)

    def test_storage_failure_is_anonymous(self, store, monkeypatch):
        def boom(_token):
            raise RuntimeError("db down")

        monkeypatch.setattr(store.sessions, "get", boom)
        assert auth_service.load_user_from_request(store, "any") is None


def test_set_user_tier(store):
    auth_service.signup(store, "a@example.com", "abcdef", "A")
    assert auth_service.set_user_tier(store, "A@example.com", "pro") is True
    assert store.users.get_by_email("a@example.com")["tier"] == "pro"
    with pytest.raises(ValidationError):
        auth_service.set_user_tier(store, "a@example.com", "gold")
