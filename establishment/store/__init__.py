"""Backing stores for the establishment graph."""
from establishment.config import Settings
from establishment.store.base import BackingStore, GRAPH_ROW_COLUMNS
from establishment.store.sqlite_store import SQLiteStore

__all__ = ["BackingStore", "GRAPH_ROW_COLUMNS", "SQLiteStore", "open_store"]


def open_store(config: Settings) -> BackingStore:
    """Open the configured backend and install its schema."""
    if config.store.backend == "sqlite":
        store = SQLiteStore(config.store.sqlite_path, timeout=config.store.timeout)
    else:
        from establishment.store.neo4j_store import Neo4jStore
        store = Neo4jStore.connect(config.neo4j, timeout=config.store.timeout)

    try:
        store.ensure_schema()
    except Exception:
        store.close()
        raise
    return store
