"""
SQLite backing store.

Embedded alternative to Neo4j for local development and tests. The graph
constraints live in the schema:

- persons.id is the primary key (duplicate person ids are rejected)
- relationships are UNIQUE on (source_id, target_id, rel_type), so the
  relationship upsert is a single INSERT ... ON CONFLICT statement
- users.login and users.email are each UNIQUE
"""

import sqlite3
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, Iterator, Optional

from establishment.errors import (
    AlreadyExistsError,
    EstablishmentError,
    StoreError,
    StoreTimeoutError,
)
from establishment.logging_config import get_logger
from establishment.models import Person, Relationship, Session, User
from establishment.store.base import BackingStore, PERSON_FIELDS, parse_stored_person
from establishment.store.deadline import time_left

logger = get_logger(__name__)

DEFAULT_DB_PATH = "data/establishment.db"

_PERSON_COLUMNS = ", ".join(PERSON_FIELDS)


def _wrap_sqlite_error(operation: str, error: sqlite3.Error) -> StoreError:
    if isinstance(error, sqlite3.OperationalError) and "locked" in str(error).lower():
        return StoreTimeoutError(f"Failed to {operation}: {error}")
    return StoreError(f"Failed to {operation}: {error}")


def store_operation(func):
    """Wrap sqlite3 errors in StoreError with the operation name."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except EstablishmentError:
            raise
        except sqlite3.Error as e:
            logger.error(f'Error in {func.__name__}: {e}')
            raise _wrap_sqlite_error(func.__name__, e) from e

    return wrapper


class SQLiteStore(BackingStore):
    """Store persons, relationships, users and sessions in SQLite."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 5.0):
        self.db_path = db_path or DEFAULT_DB_PATH
        self.timeout = timeout
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self):
        """Open a connection; commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path, timeout=time_left(self.timeout))
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        finally:
            conn.close()

    def _iterate(self, operation: str, sql: str, params: tuple = ()) -> Iterator[sqlite3.Row]:
        """Stream rows lazily, wrapping errors the same way as store_operation."""
        try:
            with self._connect() as conn:
                for row in conn.execute(sql, params):
                    yield row
        except sqlite3.Error as e:
            logger.error(f'Error in {operation}: {e}')
            raise _wrap_sqlite_error(operation, e) from e

    @store_operation
    def ensure_schema(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS persons (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    occupation TEXT NOT NULL DEFAULT '',
                    party TEXT,
                    collaboration_status TEXT,
                    image_url TEXT,
                    twitter TEXT,
                    description TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS relationships (
                    source_id TEXT NOT NULL,
                    target_id TEXT NOT NULL,
                    rel_type TEXT NOT NULL,
                    details TEXT NOT NULL DEFAULT '',

                    UNIQUE (source_id, target_id, rel_type),
                    CHECK (source_id <> target_id),
                    FOREIGN KEY (source_id) REFERENCES persons(id) ON DELETE CASCADE,
                    FOREIGN KEY (target_id) REFERENCES persons(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    login TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL
                )
            """)
            # user_id is a plain reference; sessions are not part of the person graph
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    expires_at INTEGER NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_relationship_source ON relationships(source_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_relationship_target ON relationships(target_id)")
        logger.info(f'SQLite schema ready at {self.db_path}')

    def close(self) -> None:
        # Connections are opened per call.
        pass

    # =========================================================================
    # PERSONS AND RELATIONSHIPS
    # =========================================================================

    @store_operation
    def create_person(self, person: Person) -> None:
        data = person.model_dump()
        placeholders = ", ".join("?" for _ in PERSON_FIELDS)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO persons ({_PERSON_COLUMNS}) VALUES ({placeholders})",
                    tuple(data[field] for field in PERSON_FIELDS),
                )
        except sqlite3.IntegrityError as e:
            raise AlreadyExistsError(f"Person with id {person.id} already exists") from e
        logger.info(f'Added person: id={person.id}, name={person.name}')

    @store_operation
    def fetch_person(self, person_id: str) -> Optional[Person]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_PERSON_COLUMNS} FROM persons WHERE id = ?", (person_id,)
            ).fetchone()
        if not row:
            return None
        person = parse_stored_person(dict(row))
        if person is None:
            logger.error(f'Malformed person record: id={person_id}')
            raise StoreError(f"Failed to fetch_person: malformed record for {person_id}")
        return person

    def iter_persons(self) -> Iterator[Person]:
        skipped = 0
        for row in self._iterate("iter_persons", f"SELECT {_PERSON_COLUMNS} FROM persons"):
            person = parse_stored_person(dict(row))
            if person is None:
                skipped += 1
                continue
            yield person
        if skipped:
            logger.warning(f'Skipped {skipped} malformed person records')

    @store_operation
    def endpoints_exist(self, source_id: str, target_id: str) -> bool:
        with self._connect() as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM persons WHERE id IN (?, ?)", (source_id, target_id)
            ).fetchone()
        return count == len({source_id, target_id})

    @store_operation
    def merge_relationship(self, rel: Relationship) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("""
                INSERT INTO relationships (source_id, target_id, rel_type, details)
                SELECT ?, ?, ?, ?
                WHERE (SELECT COUNT(*) FROM persons WHERE id IN (?, ?)) = 2
                ON CONFLICT (source_id, target_id, rel_type)
                DO UPDATE SET details = excluded.details
            """, (
                rel.source_id, rel.target_id, rel.type.value, rel.details,
                rel.source_id, rel.target_id,
            ))
            merged = cursor.rowcount > 0
        if merged:
            logger.info(f'Merged relationship: {rel.source_id} -> {rel.target_id} ({rel.type.value})')
        return merged

    def graph_rows(self) -> Iterator[dict[str, Any]]:
        person_columns = ", ".join(f"p.{field}" for field in PERSON_FIELDS)
        query = f"""
            SELECT {person_columns}, r.rel_type, r.details, q.id AS target_id
            FROM persons p
            LEFT JOIN relationships r ON r.source_id = p.id
            LEFT JOIN persons q ON q.id = r.target_id
        """
        for row in self._iterate("graph_rows", query):
            yield dict(row)

    # =========================================================================
    # USERS
    # =========================================================================

    @store_operation
    def user_exists(self, login: str, email: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM users WHERE login = ? OR email = ? LIMIT 1", (login, email)
            ).fetchone()
        return row is not None

    @store_operation
    def create_user(self, user: User) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO users (id, login, email, password) VALUES (?, ?, ?, ?)",
                    (user.id, user.login, user.email, user.password_hash),
                )
        except sqlite3.IntegrityError as e:
            raise AlreadyExistsError("User with this login or email already exists") from e
        logger.info(f'Added user: id={user.id}, login={user.login}')

    @store_operation
    def fetch_user_by_login(self, login: str) -> Optional[User]:
        return self._fetch_user("login", login)

    @store_operation
    def fetch_user_by_id(self, user_id: str) -> Optional[User]:
        return self._fetch_user("id", user_id)

    def _fetch_user(self, column: str, value: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT id, login, email, password FROM users WHERE {column} = ?", (value,)
            ).fetchone()
        if not row:
            return None
        return User(id=row["id"], login=row["login"], email=row["email"], password_hash=row["password"])

    # =========================================================================
    # SESSIONS
    # =========================================================================

    @store_operation
    def create_session(self, session: Session) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (id, user_id, expires_at) VALUES (?, ?, ?)",
                (session.id, session.user_id, session.expires_at),
            )

    @store_operation
    def fetch_session(self, session_id: str) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, expires_at FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return Session.model_validate(dict(row)) if row else None

    @store_operation
    def delete_session(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
