"""
Session-based authentication.

Session states: absent -> active -> expired | deleted. Nothing marks a
session active except an expiry that has not passed yet; expiry is checked
lazily on every read and there is no background reaper.
"""

import secrets
import time
import uuid
from typing import Callable, Optional

from establishment.auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from establishment.config import AuthSettings
from establishment.errors import (
    AlreadyExistsError,
    InvalidCredentialsError,
    NoSessionError,
    SessionExpiredError,
    ValidationError,
)
from establishment.logging_config import get_logger
from establishment.models import PublicUser, Session, User
from establishment.store.base import BackingStore
from establishment.store.deadline import within_deadline

logger = get_logger(__name__)


def _short(session_id: str) -> str:
    """Loggable prefix of a session token."""
    return f"{session_id[:8]}..."


class AuthService:
    """Register, login, session checks and logout."""

    def __init__(
        self,
        store: BackingStore,
        config: Optional[AuthSettings] = None,
        hasher: Optional[PasswordHasher] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.config = config or AuthSettings()
        self.hasher = hasher or PasswordHasher(rounds=self.config.bcrypt_rounds)
        self.clock = clock

    @within_deadline
    def register(self, login: str, email: str, password: str) -> None:
        """Create a user with a bcrypt-hashed password."""
        if not login or not email or not password:
            raise ValidationError("Login, email, and password are required")
        if not self.hasher.is_acceptable(password):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        if self.store.user_exists(login, email):
            logger.info(f'User already exists: login={login}, email={email}')
            raise AlreadyExistsError("User with this login or email already exists")

        user = User(
            id=str(uuid.uuid4()),
            login=login,
            email=email,
            password_hash=self.hasher.hash(password),
        )
        # A concurrent registration can still win the race; the store constraint rejects ours.
        self.store.create_user(user)
        logger.info(f'User registered: id={user.id}, login={login}')

    @within_deadline
    def login(self, login: str, password: str) -> Session:
        """Verify credentials and issue a new session."""
        user = self.store.fetch_user_by_login(login)
        if user is None:
            logger.info(f'Invalid login: {login}')
            raise InvalidCredentialsError("Invalid login or password")

        if not self.hasher.verify(password, user.password_hash):
            logger.info(f'Invalid password for login: {login}')
            raise InvalidCredentialsError("Invalid login or password")

        session = Session(
            id=secrets.token_urlsafe(32),
            user_id=user.id,
            expires_at=int(self.clock()) + self.config.session_ttl_seconds,
        )
        self.store.create_session(session)
        logger.info(f'Session created: session_id={_short(session.id)}, user_id={user.id}, expires_at={session.expires_at}')
        return session

    @within_deadline
    def check_session(self, session_id: Optional[str]) -> PublicUser:
        """Return the owner of a live session."""
        if not session_id:
            raise NoSessionError("No session")

        session = self.store.fetch_session(session_id)
        if session is None:
            logger.info(f'Session inactive: session_id={_short(session_id)}')
            raise NoSessionError("Session inactive or expired")
        if session.is_expired(self.clock()):
            logger.info(f'Session expired: session_id={_short(session_id)}, expires_at={session.expires_at}')
            raise SessionExpiredError("Session inactive or expired")

        user = self.store.fetch_user_by_id(session.user_id)
        if user is None:
            logger.warning(f'User not found for session {_short(session_id)}: user_id={session.user_id}')
            raise NoSessionError("Session inactive or expired")

        return PublicUser(login=user.login)

    def require_auth(self, session_id: Optional[str]) -> PublicUser:
        """Gate for mutating operations; fails closed on any invalid session."""
        return self.check_session(session_id)

    @within_deadline
    def logout(self, session_id: Optional[str]) -> None:
        """Delete the session; deleting one that is already gone is fine."""
        if not session_id:
            raise NoSessionError("No session")
        self.store.delete_session(session_id)
        logger.info(f'User logged out, session: {_short(session_id)}')
