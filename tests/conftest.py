"""Shared pytest fixtures."""

import pytest

from establishment.config import AuthSettings, ServerSettings, Settings, StoreSettings
from establishment.store.sqlite_store import SQLiteStore


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """SQLite store with schema installed."""
    store = SQLiteStore(db_path=str(tmp_path / "establishment.db"), timeout=1.0)
    store.ensure_schema()
    yield store
    store.close()


@pytest.fixture
def auth_settings():
    """Cheap bcrypt cost for tests."""
    return AuthSettings(bcrypt_rounds=4)


@pytest.fixture
def settings(tmp_path, auth_settings):
    return Settings(
        store=StoreSettings(backend="sqlite", sqlite_path=str(tmp_path / "establishment.db")),
        auth=auth_settings,
        server=ServerSettings(static_dir=str(tmp_path / "static")),
    )
