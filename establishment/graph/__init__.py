"""Graph package - person/relationship graph over a backing store."""

from establishment.graph.assembly import AssemblyReport, GraphAssembler
from establishment.graph.graph import PoliticalGraph

__all__ = [
    "AssemblyReport",
    "GraphAssembler",
    "PoliticalGraph",
]
