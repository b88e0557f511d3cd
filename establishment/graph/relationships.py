"""Relationship operations between persons."""

import time
from typing import Callable

from establishment.errors import EndpointNotFoundError, InvalidRelationshipError
from establishment.logging_config import get_logger
from establishment.models import Relationship
from establishment.store.base import BackingStore
from establishment.store.deadline import within_deadline

logger = get_logger(__name__)


class RelationshipOperations:
    """Validated, idempotent creation of relationships."""

    def __init__(self, store: BackingStore, clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.clock = clock

    @within_deadline
    def add(self, rel: Relationship) -> None:
        """
        Upsert the edge (source, target, type).

        Re-submitting the same triple never creates a second edge; differing
        details overwrite the stored ones.
        """
        if rel.source_id == rel.target_id:
            logger.warning(f'Invalid relationship: source_id={rel.source_id} and target_id={rel.target_id} are the same')
            raise InvalidRelationshipError("source and target IDs must be different")

        logger.info(f'Verifying persons for relationship: source_id={rel.source_id}, target_id={rel.target_id}')
        if not self.store.endpoints_exist(rel.source_id, rel.target_id):
            logger.warning(f'One or both persons not found: source_id={rel.source_id}, target_id={rel.target_id}')
            raise EndpointNotFoundError(rel.source_id, rel.target_id)

        # The existence check is best-effort: an endpoint deleted in between leaves nothing to merge.
        if not self.store.merge_relationship(rel):
            raise EndpointNotFoundError(rel.source_id, rel.target_id)
