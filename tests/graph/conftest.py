"""Pytest fixtures for graph tests."""

import pytest

from establishment.graph import PoliticalGraph
from establishment.models import Person


@pytest.fixture
def graph(store):
    """PoliticalGraph over an empty SQLite store."""
    return PoliticalGraph(store)


@pytest.fixture
def alice():
    return Person(id="alice", name="Alice Nowak", occupation="Senator", party="Centre")


@pytest.fixture
def bob():
    return Person(id="bob", name="Bob Kowalski", occupation="Minister")


@pytest.fixture
def people(graph, alice, bob):
    """Graph seeded with alice and bob."""
    graph.add_person(alice)
    graph.add_person(bob)
    return graph
