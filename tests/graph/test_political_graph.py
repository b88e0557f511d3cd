"""Test graph operations against the SQLite store."""

import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from establishment.errors import (
    AlreadyExistsError,
    EndpointNotFoundError,
    InvalidRelationshipError,
    NotFoundError,
    StoreTimeoutError,
    ValidationError,
)
from establishment.graph import PoliticalGraph
from establishment.models import Person, RelationshipType


class TestPersonOperations:
    """Tests for person operations."""

    def test_add_and_get_person(self, graph, alice):
        """A stored person reads back equal in every populated field."""
        graph.add_person(alice)
        assert graph.get_person("alice") == alice

    def test_all_optional_fields_round_trip(self, graph):
        person = Person(
            id="carol",
            name="Carol",
            occupation="Lobbyist",
            party="Green",
            collaboration_status="informant",
            image_url="https://example.org/carol.png",
            twitter="@carol",
            description="Chairs the budget committee",
        )
        graph.add_person(person)
        assert graph.get_person("carol") == person

    def test_get_missing_person(self, graph):
        with pytest.raises(NotFoundError):
            graph.get_person("nobody")

    def test_duplicate_id_rejected(self, graph, alice):
        """Person ids are unique."""
        graph.add_person(alice)
        with pytest.raises(AlreadyExistsError):
            graph.add_person(Person(id="alice", name="Another Alice"))
        assert graph.get_person("alice").name == "Alice Nowak"

    def test_list_persons_is_restartable(self, graph, alice, bob):
        """Each iteration re-reads the store."""
        listing = graph.list_persons()
        assert list(listing) == []

        graph.add_person(alice)
        graph.add_person(bob)

        assert {p.id for p in listing} == {"alice", "bob"}
        assert {p.id for p in listing} == {"alice", "bob"}


class TestRelationships:
    """Tests for relationship integrity rules."""

    def test_self_loop_rejected(self, people):
        with pytest.raises(InvalidRelationshipError):
            people.add_relationship("alice", "alice", RelationshipType.FAMILY, "self")
        assert people.get_graph().edges == []

    def test_self_loop_checked_before_existence(self, graph):
        """Self-loops fail even when the person does not exist."""
        with pytest.raises(InvalidRelationshipError):
            graph.add_relationship("ghost", "ghost", RelationshipType.FAMILY, "x")

    @pytest.mark.parametrize("source, target", [
        ("alice", "ghost"),
        ("ghost", "bob"),
        ("ghost", "phantom"),
    ])
    def test_missing_endpoint_rejected(self, people, source, target):
        with pytest.raises(EndpointNotFoundError):
            people.add_relationship(source, target, RelationshipType.COLLEAGUE, "x")
        assert people.get_graph().edges == []

    def test_add_relationship_is_idempotent(self, people):
        """Submitting the same triple twice gives one edge."""
        people.add_relationship("alice", "bob", RelationshipType.FAMILY, "x")
        people.add_relationship("alice", "bob", RelationshipType.FAMILY, "x")

        edges = people.get_graph().edges
        assert len(edges) == 1

    def test_resubmitting_triple_updates_details(self, people):
        people.add_relationship("alice", "bob", RelationshipType.FAMILY, "cousins")
        people.add_relationship("alice", "bob", RelationshipType.FAMILY, "siblings")

        edges = people.get_graph().edges
        assert len(edges) == 1
        assert edges[0].details == "siblings"

    def test_different_types_are_different_edges(self, people):
        people.add_relationship("alice", "bob", RelationshipType.FAMILY, "x")
        people.add_relationship("alice", "bob", RelationshipType.PARTY, "x")
        people.add_relationship("bob", "alice", RelationshipType.FAMILY, "x")

        assert len(people.get_graph().edges) == 3

    def test_type_given_as_string(self, people):
        people.add_relationship("alice", "bob", "BUSINESS", "board seat")
        assert people.get_graph().edges[0].type is RelationshipType.BUSINESS

    def test_unknown_type_rejected(self, people):
        with pytest.raises(ValidationError):
            people.add_relationship("alice", "bob", "NEMESIS", "x")

    def test_endpoint_vanishing_after_check(self, people, store, monkeypatch):
        """The upsert itself refuses to write when an endpoint is missing."""
        monkeypatch.setattr(store, "endpoints_exist", lambda source, target: True)
        with pytest.raises(EndpointNotFoundError):
            people.add_relationship("alice", "ghost", RelationshipType.FAMILY, "x")
        assert people.get_graph().edges == []


    def test_existence_check_and_merge_share_one_deadline(self, store, clock, monkeypatch):
        """Time spent on the existence check is not given back to the merge."""
        graph = PoliticalGraph(store, clock=clock)
        graph.add_person(Person(id="alice", name="Alice"))
        graph.add_person(Person(id="bob", name="Bob"))

        def slow_check(source, target):
            clock.advance(store.timeout + 0.5)
            return True

        monkeypatch.setattr(store, "endpoints_exist", slow_check)
        with pytest.raises(StoreTimeoutError):
            graph.add_relationship("alice", "bob", RelationshipType.FAMILY, "x")
        assert graph.get_graph().edges == []

    def test_concurrent_identical_submissions_leave_one_edge(self, people):
        workers = 16
        start = threading.Barrier(workers)

        def submit():
            start.wait()
            people.add_relationship("alice", "bob", RelationshipType.FAMILY, "x")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(submit) for _ in range(workers)]
        errors = [f.exception() for f in futures if f.exception() is not None]

        assert errors == []
        edges = people.get_graph().edges
        assert [(e.source_id, e.target_id, e.type) for e in edges] == [
            ("alice", "bob", RelationshipType.FAMILY),
        ]


class TestGetGraph:
    """Tests for the whole-graph view."""

    def test_empty_graph(self, graph):
        snapshot = graph.get_graph()
        assert snapshot.nodes == []
        assert snapshot.edges == []

    def test_alice_bob_scenario(self, graph):
        graph.add_person(Person(id="alice", name="Alice"))
        graph.add_person(Person(id="bob", name="Bob"))
        graph.add_relationship("alice", "bob", RelationshipType.COLLEAGUE, "committee")

        snapshot = graph.get_graph()

        assert {n.id for n in snapshot.nodes} == {"alice", "bob"}
        assert len(snapshot.edges) == 1
        edge = snapshot.edges[0]
        assert edge.source_id == "alice"
        assert edge.target_id == "bob"
        assert edge.type is RelationshipType.COLLEAGUE
        assert edge.details == "committee"

    def test_one_node_per_person_under_fan_out(self, graph):
        for pid in ("hub", "a", "b", "c"):
            graph.add_person(Person(id=pid, name=pid.upper()))
        for pid in ("a", "b", "c"):
            graph.add_relationship("hub", pid, RelationshipType.PARTY, "member")
            graph.add_relationship(pid, "hub", RelationshipType.COLLEAGUE, "reports")

        snapshot = graph.get_graph()

        assert sorted(n.id for n in snapshot.nodes) == ["a", "b", "c", "hub"]
        assert len(snapshot.edges) == 6

    def test_bad_stored_row_dropped_and_logged(self, people, store, caplog):
        """Legacy data with an unknown type is skipped with a warning."""
        conn = sqlite3.connect(store.db_path)
        with conn:
            conn.execute(
                "INSERT INTO relationships (source_id, target_id, rel_type, details) VALUES (?, ?, ?, ?)",
                ("alice", "bob", "LEGACY", "old import"),
            )
        conn.close()
        people.add_relationship("bob", "alice", RelationshipType.FRIEND, "x")

        with caplog.at_level(logging.WARNING, logger="establishment.graph.queries"):
            snapshot = people.get_graph()

        assert len(snapshot.nodes) == 2
        assert [(e.source_id, e.type.value) for e in snapshot.edges] == [("bob", "FRIEND")]
        assert "dropped 1 rows" in caplog.text
        assert "unknown_type=1" in caplog.text
