"""Backing store interface shared by the Neo4j and SQLite implementations.

One store object holds persons, relationships, users and sessions. Rows
returned by ``graph_rows`` are plain dicts keyed by ``GRAPH_ROW_COLUMNS``:
the person's own fields, then ``rel_type``, ``details`` and ``target_id`` of
one outgoing relationship (all ``None`` when the person has none).
"""

from abc import ABC, abstractmethod
from typing import Any, Iterator, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from establishment.models import Person, Relationship, Session, User


PERSON_FIELDS = tuple(Person.model_fields)
EDGE_COLUMNS = ("rel_type", "details", "target_id")
GRAPH_ROW_COLUMNS = PERSON_FIELDS + EDGE_COLUMNS


def parse_stored_person(data: Mapping[str, Any]) -> Optional[Person]:
    """Build a Person from a stored record; None if the record is malformed."""
    values = {key: value for key, value in data.items() if key in PERSON_FIELDS and value is not None}
    if not values.get("id"):
        return None
    try:
        return Person.model_validate(values)
    except PydanticValidationError:
        return None


class BackingStore(ABC):
    """Persistence for the person graph, credentials and sessions."""

    # Seconds allowed for one call, and for one multi-call operation as a whole.
    timeout: float = 5.0

    # ─────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────

    @abstractmethod
    def ensure_schema(self) -> None:
        """Install uniqueness constraints (idempotent)."""

    @abstractmethod
    def close(self) -> None:
        """Release connections."""

    # ─────────────────────────────────────────
    # Persons and relationships
    # ─────────────────────────────────────────

    @abstractmethod
    def create_person(self, person: Person) -> None:
        """Insert a person; raises AlreadyExistsError on id collision."""

    @abstractmethod
    def fetch_person(self, person_id: str) -> Optional[Person]:
        ...

    @abstractmethod
    def iter_persons(self) -> Iterator[Person]:
        ...

    @abstractmethod
    def endpoints_exist(self, source_id: str, target_id: str) -> bool:
        """True when both persons exist."""

    @abstractmethod
    def merge_relationship(self, rel: Relationship) -> bool:
        """
        Upsert the edge identified by (source, target, type) in one statement.

        Returns False when an endpoint was not matched and nothing was written.
        """

    @abstractmethod
    def graph_rows(self) -> Iterator[dict[str, Any]]:
        """Every person outer-joined with its outgoing relationships."""

    # ─────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────

    @abstractmethod
    def user_exists(self, login: str, email: str) -> bool:
        """True when a user holds either the login or the email."""

    @abstractmethod
    def create_user(self, user: User) -> None:
        """Insert a user; raises AlreadyExistsError on login/email collision."""

    @abstractmethod
    def fetch_user_by_login(self, login: str) -> Optional[User]:
        ...

    @abstractmethod
    def fetch_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    # ─────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────

    @abstractmethod
    def create_session(self, session: Session) -> None:
        ...

    @abstractmethod
    def fetch_session(self, session_id: str) -> Optional[Session]:
        ...

    @abstractmethod
    def delete_session(self, session_id: str) -> None:
        """Delete if present; deleting a missing session is not an error."""
