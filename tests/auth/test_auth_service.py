"""Test the register -> login -> session check -> logout lifecycle."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from establishment.auth import AuthService, PasswordHasher
from establishment.errors import (
    AlreadyExistsError,
    InvalidCredentialsError,
    NoSessionError,
    SessionExpiredError,
    StoreTimeoutError,
    ValidationError,
)

DAY = 24 * 60 * 60


@pytest.fixture
def auth(store, auth_settings, clock):
    return AuthService(store, auth_settings, clock=clock)


@pytest.fixture
def registered(auth):
    auth.register("jan", "jan@example.org", "s3cret-pass")
    return auth


class TestRegister:

    def test_password_stored_hashed(self, registered, store):
        user = store.fetch_user_by_login("jan")
        assert user.password_hash != "s3cret-pass"
        assert PasswordHasher().verify("s3cret-pass", user.password_hash)

    def test_duplicate_login(self, registered):
        with pytest.raises(AlreadyExistsError):
            registered.register("jan", "other@example.org", "pw")

    def test_duplicate_email(self, registered):
        with pytest.raises(AlreadyExistsError):
            registered.register("other", "jan@example.org", "pw")

    def test_concurrent_duplicate_caught_by_store(self, registered, store, monkeypatch):
        """If the existence check loses a race, the store constraint still rejects."""
        monkeypatch.setattr(store, "user_exists", lambda login, email: False)
        with pytest.raises(AlreadyExistsError):
            registered.register("jan", "jan@example.org", "pw")

    def test_concurrent_registrations_of_one_login(self, auth):
        workers = 12
        start = threading.Barrier(workers)

        def register(n):
            start.wait()
            auth.register("jan", f"jan{n}@example.org", "pw")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(register, n) for n in range(workers)]
        outcomes = [f.exception() for f in futures]

        assert sum(e is None for e in outcomes) == 1
        assert all(isinstance(e, AlreadyExistsError) for e in outcomes if e is not None)

    def test_check_and_insert_share_one_deadline(self, auth, store, clock, monkeypatch):
        """A slow existence check leaves no fresh budget for the insert."""
        def slow_exists(login, email):
            clock.advance(store.timeout + 0.5)
            return False

        monkeypatch.setattr(store, "user_exists", slow_exists)
        with pytest.raises(StoreTimeoutError):
            auth.register("jan", "jan@example.org", "pw")
        assert store.fetch_user_by_login("jan") is None

    @pytest.mark.parametrize("login, email, password", [
        ("", "a@example.org", "pw"),
        ("a", "", "pw"),
        ("a", "a@example.org", ""),
        ("a", "a@example.org", "p" * 73),
    ])
    def test_invalid_input(self, auth, login, email, password):
        with pytest.raises(ValidationError):
            auth.register(login, email, password)


class TestLogin:

    def test_session_expires_in_a_day(self, registered, clock):
        session = registered.login("jan", "s3cret-pass")
        assert session.expires_at == int(clock.now) + DAY

    def test_session_persisted_for_owner(self, registered, store):
        session = registered.login("jan", "s3cret-pass")
        stored = store.fetch_session(session.id)
        assert stored == session
        assert stored.user_id == store.fetch_user_by_login("jan").id

    def test_each_login_gets_a_new_session(self, registered):
        first = registered.login("jan", "s3cret-pass")
        second = registered.login("jan", "s3cret-pass")
        assert first.id != second.id
        assert len(first.id) >= 32

    def test_wrong_password(self, registered):
        with pytest.raises(InvalidCredentialsError):
            registered.login("jan", "wrong")

    def test_unknown_login(self, registered):
        with pytest.raises(InvalidCredentialsError):
            registered.login("nobody", "s3cret-pass")


class TestSessionCheck:

    def test_valid_session_returns_login_only(self, registered):
        session = registered.login("jan", "s3cret-pass")
        user = registered.check_session(session.id)
        assert user.model_dump() == {"login": "jan"}

    def test_missing_token(self, registered):
        with pytest.raises(NoSessionError):
            registered.check_session(None)
        with pytest.raises(NoSessionError):
            registered.check_session("")

    def test_unknown_session(self, registered):
        with pytest.raises(NoSessionError):
            registered.check_session("made-up")

    def test_expired_session_still_stored(self, registered, store, clock):
        """Expiry is lazy: the record survives but no longer authenticates."""
        session = registered.login("jan", "s3cret-pass")
        clock.advance(DAY + 1)

        with pytest.raises(SessionExpiredError):
            registered.check_session(session.id)
        assert store.fetch_session(session.id) is not None

    def test_valid_until_the_expiry_second(self, registered, clock):
        session = registered.login("jan", "s3cret-pass")
        clock.advance(DAY)
        assert registered.check_session(session.id).login == "jan"

    def test_expiry_counts_whole_seconds(self, registered, clock):
        session = registered.login("jan", "s3cret-pass")
        clock.advance(DAY + 0.5)
        assert registered.check_session(session.id).login == "jan"

        clock.advance(0.5)
        with pytest.raises(SessionExpiredError):
            registered.check_session(session.id)

    def test_require_auth_fails_closed(self, registered, clock):
        session = registered.login("jan", "s3cret-pass")
        assert registered.require_auth(session.id).login == "jan"

        clock.advance(DAY + 1)
        with pytest.raises(SessionExpiredError):
            registered.require_auth(session.id)
        with pytest.raises(NoSessionError):
            registered.require_auth(None)

    def test_session_of_missing_user(self, registered, store, monkeypatch):
        session = registered.login("jan", "s3cret-pass")
        monkeypatch.setattr(store, "fetch_user_by_id", lambda user_id: None)
        with pytest.raises(NoSessionError):
            registered.check_session(session.id)


class TestLogout:

    def test_logout_ends_session(self, registered):
        session = registered.login("jan", "s3cret-pass")
        registered.logout(session.id)
        with pytest.raises(NoSessionError):
            registered.check_session(session.id)

    def test_logout_is_idempotent(self, registered):
        session = registered.login("jan", "s3cret-pass")
        registered.logout(session.id)
        registered.logout(session.id)

    def test_logout_without_token(self, registered):
        with pytest.raises(NoSessionError):
            registered.logout(None)

    def test_logout_leaves_other_sessions(self, registered):
        first = registered.login("jan", "s3cret-pass")
        second = registered.login("jan", "s3cret-pass")
        registered.logout(first.id)
        assert registered.check_session(second.id).login == "jan"
