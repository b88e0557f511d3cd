"""Main PoliticalGraph facade combining all operations."""

import time
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from establishment.errors import ValidationError
from establishment.graph.persons import PersonListing, PersonOperations
from establishment.graph.queries import GraphQueries
from establishment.graph.relationships import RelationshipOperations
from establishment.models import Graph, Person, Relationship, RelationshipType
from establishment.store.base import BackingStore


class PoliticalGraph:
    """
    Main interface for graph operations.

    Combines person, relationship, and query operations over one store.

    Usage:
        graph = PoliticalGraph(store)
        graph.add_person(Person(id="alice", name="Alice"))
        graph.add_person(Person(id="bob", name="Bob"))
        graph.add_relationship("alice", "bob", "COLLEAGUE", "committee")
        snapshot = graph.get_graph()
    """

    def __init__(self, store: BackingStore, clock: Callable[[], float] = time.monotonic):
        self.store = store

        # Compose operations
        self.persons = PersonOperations(store)
        self.relationships = RelationshipOperations(store, clock)
        self.queries = GraphQueries(store)

    # ─────────────────────────────────────────
    # Person operations (delegated)
    # ─────────────────────────────────────────

    def add_person(self, person: Person) -> None:
        self.persons.add(person)

    def get_person(self, person_id: str) -> Person:
        return self.persons.get(person_id)

    def list_persons(self) -> PersonListing:
        return self.persons.get_all()

    # ─────────────────────────────────────────
    # Relationship operations (delegated)
    # ─────────────────────────────────────────

    def add_relationship(self, source_id: str, target_id: str,
                         rel_type: RelationshipType, details: str = "") -> None:
        try:
            rel = Relationship(source_id=source_id, target_id=target_id,
                               type=rel_type, details=details)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid relationship: {e.errors()[0]['msg']}") from e
        self.relationships.add(rel)

    # ─────────────────────────────────────────
    # Query operations (delegated)
    # ─────────────────────────────────────────

    def get_graph(self) -> Graph:
        return self.queries.get_graph()
