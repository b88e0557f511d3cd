"""Assemble store rows into a structurally valid graph.

The outer-join query behind ``BackingStore.graph_rows`` emits one row per
outgoing edge, so a person's attributes repeat once per incident edge and a
row may point at a person the same result never returns as a node.
Assembly runs in two passes:

1. collect nodes (keyed by id, last row wins) and candidate edges
   (keyed by (source, target, type), last row wins);
2. keep only the edges whose endpoints are both in the node map.

Malformed rows are dropped and counted per reason in an ``AssemblyReport``;
they never fail the whole graph.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from establishment.models import Graph, Person, Relationship, RelationshipType
from establishment.store.base import parse_stored_person


MALFORMED_PERSON = "malformed_person"
INCOMPLETE_EDGE = "incomplete_edge"
UNKNOWN_TYPE = "unknown_type"
SELF_LOOP = "self_loop"
DUPLICATE_EDGE = "duplicate_edge"
DANGLING_EDGE = "dangling_edge"


@dataclass
class AssemblyReport:
    """What assembly saw and what it dropped."""
    rows: int = 0
    nodes: int = 0
    edges: int = 0
    dropped: Counter = field(default_factory=Counter)

    @property
    def total_dropped(self) -> int:
        return sum(self.dropped.values())

    def summary(self) -> str:
        reasons = ", ".join(f"{reason}={count}" for reason, count in sorted(self.dropped.items()))
        return f"{self.rows} rows, {self.nodes} nodes, {self.edges} edges, dropped: {reasons or 'none'}"


class GraphAssembler:
    """Turn raw graph rows into a deduplicated, referentially closed Graph."""

    def assemble(self, rows: Iterable[Mapping[str, Any]]) -> tuple[Graph, AssemblyReport]:
        report = AssemblyReport()
        nodes: dict[str, Person] = {}
        candidates: dict[tuple[str, str, str], Relationship] = {}

        for row in rows:
            report.rows += 1

            person = parse_stored_person(row)
            if person is None:
                report.dropped[MALFORMED_PERSON] += 1
                continue
            nodes[person.id] = person

            edge, reason = self._edge_from_row(person.id, row)
            if reason:
                report.dropped[reason] += 1
            if edge is None:
                continue
            if edge.key in candidates:
                report.dropped[DUPLICATE_EDGE] += 1
            candidates[edge.key] = edge

        edges = []
        for edge in candidates.values():
            if edge.source_id in nodes and edge.target_id in nodes:
                edges.append(edge)
            else:
                report.dropped[DANGLING_EDGE] += 1

        report.nodes = len(nodes)
        report.edges = len(edges)
        return Graph(nodes=list(nodes.values()), edges=edges), report

    @staticmethod
    def _edge_from_row(source_id: str, row: Mapping[str, Any]) -> tuple[Optional[Relationship], Optional[str]]:
        """Return (edge, drop reason); both None for a person with no outgoing edge."""
        target_id = row.get("target_id")
        rel_type = row.get("rel_type")
        details = row.get("details")

        if target_id is None:
            # A relationship whose target is gone.
            return None, DANGLING_EDGE if rel_type is not None else None
        if rel_type is None or details is None:
            return None, INCOMPLETE_EDGE
        if target_id == source_id:
            return None, SELF_LOOP
        try:
            edge_type = RelationshipType(rel_type)
        except ValueError:
            return None, UNKNOWN_TYPE
        try:
            edge = Relationship(source_id=source_id, target_id=target_id, type=edge_type, details=details)
        except PydanticValidationError:
            return None, INCOMPLETE_EDGE
        return edge, None
