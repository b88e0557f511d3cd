"""Whole-graph queries."""

from establishment.graph.assembly import GraphAssembler
from establishment.logging_config import get_logger
from establishment.models import Graph
from establishment.store.base import BackingStore

logger = get_logger(__name__)


class GraphQueries:
    """Read the graph as a fresh, referentially closed projection."""

    def __init__(self, store: BackingStore, assembler: GraphAssembler = None):
        self.store = store
        self.assembler = assembler or GraphAssembler()

    def get_graph(self) -> Graph:
        graph, report = self.assembler.assemble(self.store.graph_rows())
        if report.total_dropped:
            logger.warning(f'Graph assembly dropped {report.total_dropped} rows: {report.summary()}')
        logger.info(f'Returning graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges')
        return graph
