"""
Neo4j backing store using the official Python driver.

Every statement is sent as a ``neo4j.Query`` carrying the time left before the
current deadline (or the configured timeout outside one),
so a slow server fails the call instead of blocking the request.
"""

from functools import wraps
from typing import Any, Iterator, Optional

from neo4j import READ_ACCESS, WRITE_ACCESS, GraphDatabase, Query
from neo4j.exceptions import ConstraintError, DriverError, Neo4jError

from establishment.config import DEFAULT_NEO4J_PASSWORD, Neo4jSettings
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

SCHEMA_CONSTRAINTS = [
    "CREATE CONSTRAINT person_id_unique IF NOT EXISTS FOR (p:Person) REQUIRE p.id IS UNIQUE",
    "CREATE CONSTRAINT user_id_unique IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
    "CREATE CONSTRAINT user_login_unique IF NOT EXISTS FOR (u:User) REQUIRE u.login IS UNIQUE",
    "CREATE CONSTRAINT user_email_unique IF NOT EXISTS FOR (u:User) REQUIRE u.email IS UNIQUE",
    "CREATE CONSTRAINT session_id_unique IF NOT EXISTS FOR (s:Session) REQUIRE s.id IS UNIQUE",
]

_PERSON_RETURN = ", ".join(f"p.{field} AS {field}" for field in PERSON_FIELDS)

_USER_RETURN = "u.id AS id, u.login AS login, u.email AS email, u.password AS password_hash"


def _wrap_neo4j_error(operation: str, error: Exception) -> StoreError:
    code = getattr(error, "code", None) or ""
    if "TransactionTimedOut" in code:
        return StoreTimeoutError(f"Failed to {operation}: {error}")
    return StoreError(f"Failed to {operation}: {error}")


def store_operation(func):
    """Wrap driver errors in StoreError with the operation name."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except EstablishmentError:
            raise
        except (Neo4jError, DriverError) as e:
            logger.error(f'Error in {func.__name__}: {e}')
            raise _wrap_neo4j_error(func.__name__, e) from e

    return wrapper


class Neo4jStore(BackingStore):
    """Neo4j store for the person graph, users and sessions."""

    def __init__(self, driver, database: Optional[str] = None, timeout: float = 5.0):
        """
        Args:
            driver: an open neo4j Driver, owned by this store from now on
            database: target database name, server default if None
            timeout: per-statement deadline in seconds
        """
        self.driver = driver
        self.database = database
        self.timeout = timeout

    @classmethod
    def connect(cls, config: Neo4jSettings, timeout: float = 5.0) -> "Neo4jStore":
        """Create a driver and verify the server is reachable."""
        if config.password == DEFAULT_NEO4J_PASSWORD:
            logger.warning('NEO4J_PASSWORD not set, using default password')

        logger.info(f'Connecting to Neo4j at {config.uri} with user {config.user}')
        try:
            driver = GraphDatabase.driver(
                config.uri,
                auth=(config.user, config.password),
                connection_timeout=timeout,
                connection_acquisition_timeout=timeout,
            )
            driver.verify_connectivity()
        except (Neo4jError, DriverError) as e:
            raise StoreError(f"Failed to connect to Neo4j: {e}") from e

        logger.info('Successfully connected to Neo4j')
        return cls(driver, database=config.database, timeout=timeout)

    def close(self) -> None:
        self.driver.close()

    def _run(self, cypher: str, params: Optional[dict] = None, access_mode: str = READ_ACCESS) -> list[dict]:
        """Run one statement in an auto-commit transaction and return its records as dicts."""
        with self.driver.session(database=self.database, default_access_mode=access_mode) as session:
            result = session.run(Query(cypher, timeout=time_left(self.timeout)), params or {})
            return [record.data() for record in result]

    def _stream(self, operation: str, cypher: str, params: Optional[dict] = None) -> Iterator[dict]:
        """Yield records lazily while the driver session stays open."""
        try:
            with self.driver.session(database=self.database, default_access_mode=READ_ACCESS) as session:
                result = session.run(Query(cypher, timeout=time_left(self.timeout)), params or {})
                for record in result:
                    yield record.data()
        except (Neo4jError, DriverError) as e:
            logger.error(f'Error in {operation}: {e}')
            raise _wrap_neo4j_error(operation, e) from e

    @store_operation
    def ensure_schema(self) -> None:
        for statement in SCHEMA_CONSTRAINTS:
            self._run(statement, access_mode=WRITE_ACCESS)
        logger.info(f'Ensured {len(SCHEMA_CONSTRAINTS)} Neo4j constraints')

    # ─────────────────────────────────────────
    # Persons and relationships
    # ─────────────────────────────────────────

    @store_operation
    def create_person(self, person: Person) -> None:
        try:
            self._run(
                "CREATE (p:Person $props)",
                {"props": person.model_dump(exclude_none=True)},
                access_mode=WRITE_ACCESS,
            )
        except ConstraintError as e:
            raise AlreadyExistsError(f"Person with id {person.id} already exists") from e
        logger.info(f'Added person: id={person.id}, name={person.name}, occupation={person.occupation}')

    @store_operation
    def fetch_person(self, person_id: str) -> Optional[Person]:
        records = self._run(
            "MATCH (p:Person {id: $id}) RETURN p {.*} AS person LIMIT 1",
            {"id": person_id},
        )
        if not records:
            return None
        person = parse_stored_person(records[0]["person"])
        if person is None:
            logger.error(f'Malformed person record: id={person_id}')
            raise StoreError(f"Failed to fetch_person: malformed record for {person_id}")
        return person

    def iter_persons(self) -> Iterator[Person]:
        skipped = 0
        for record in self._stream("iter_persons", "MATCH (p:Person) RETURN p {.*} AS person"):
            person = parse_stored_person(record["person"])
            if person is None:
                skipped += 1
                continue
            yield person
        if skipped:
            logger.warning(f'Skipped {skipped} malformed person records')

    @store_operation
    def endpoints_exist(self, source_id: str, target_id: str) -> bool:
        records = self._run(
            "MATCH (p:Person) WHERE p.id IN [$source_id, $target_id] "
            "RETURN count(DISTINCT p.id) AS found",
            {"source_id": source_id, "target_id": target_id},
        )
        return bool(records) and records[0]["found"] == len({source_id, target_id})

    @store_operation
    def merge_relationship(self, rel: Relationship) -> bool:
        # MERGE locks both endpoint nodes, so identical concurrent merges yield one edge.
        records = self._run(
            """
            MATCH (a:Person {id: $source_id}), (b:Person {id: $target_id})
            MERGE (a)-[r:RELATIONSHIP {type: $type}]->(b)
            SET r.details = $details
            RETURN count(r) AS merged
            """,
            {
                "source_id": rel.source_id,
                "target_id": rel.target_id,
                "type": rel.type.value,
                "details": rel.details,
            },
            access_mode=WRITE_ACCESS,
        )
        merged = bool(records) and records[0]["merged"] > 0
        if merged:
            logger.info(f'Merged relationship: {rel.source_id} -> {rel.target_id} ({rel.type.value})')
        return merged

    def graph_rows(self) -> Iterator[dict[str, Any]]:
        query = f"""
            MATCH (p:Person)
            OPTIONAL MATCH (p)-[r:RELATIONSHIP]->(q:Person)
            RETURN {_PERSON_RETURN}, r.type AS rel_type, r.details AS details, q.id AS target_id
        """
        yield from self._stream("graph_rows", query)

    # ─────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────

    @store_operation
    def user_exists(self, login: str, email: str) -> bool:
        records = self._run(
            "MATCH (u:User) WHERE u.login = $login OR u.email = $email RETURN u.id AS id LIMIT 1",
            {"login": login, "email": email},
        )
        return bool(records)

    @store_operation
    def create_user(self, user: User) -> None:
        try:
            self._run(
                "CREATE (u:User {id: $id, login: $login, email: $email, password: $password})",
                {"id": user.id, "login": user.login, "email": user.email, "password": user.password_hash},
                access_mode=WRITE_ACCESS,
            )
        except ConstraintError as e:
            raise AlreadyExistsError("User with this login or email already exists") from e
        logger.info(f'Added user: id={user.id}, login={user.login}')

    @store_operation
    def fetch_user_by_login(self, login: str) -> Optional[User]:
        records = self._run(
            f"MATCH (u:User {{login: $login}}) RETURN {_USER_RETURN} LIMIT 1",
            {"login": login},
        )
        return User.model_validate(records[0]) if records else None

    @store_operation
    def fetch_user_by_id(self, user_id: str) -> Optional[User]:
        records = self._run(
            f"MATCH (u:User {{id: $id}}) RETURN {_USER_RETURN} LIMIT 1",
            {"id": user_id},
        )
        return User.model_validate(records[0]) if records else None

    # ─────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────

    @store_operation
    def create_session(self, session: Session) -> None:
        self._run(
            "CREATE (s:Session {id: $id, userId: $user_id, expiresAt: $expires_at})",
            {"id": session.id, "user_id": session.user_id, "expires_at": session.expires_at},
            access_mode=WRITE_ACCESS,
        )

    @store_operation
    def fetch_session(self, session_id: str) -> Optional[Session]:
        records = self._run(
            "MATCH (s:Session {id: $id}) "
            "RETURN s.id AS id, s.userId AS user_id, s.expiresAt AS expires_at LIMIT 1",
            {"id": session_id},
        )
        return Session.model_validate(records[0]) if records else None

    @store_operation
    def delete_session(self, session_id: str) -> None:
        self._run(
            "MATCH (s:Session {id: $id}) DELETE s",
            {"id": session_id},
            access_mode=WRITE_ACCESS,
        )
