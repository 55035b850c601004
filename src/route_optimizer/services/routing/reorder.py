"""Drag-and-drop reordering on top of the ordering store."""

from __future__ import annotations

import logging

from .ordering_store import OrderingStore

logger = logging.getLogger(__name__)


class ManualReorderController:
    """Translates drag gestures into single ``reorder`` calls on the store."""

    def __init__(self, store: OrderingStore) -> None:
        self.store = store

    def move(self, source_id: str, destination_id: str) -> bool:
        """Move ``source_id`` into the slot held by ``destination_id``.

        Returns True when the ordering changed. Drops onto the same stop are
        no-ops, and drags naming a stop that is no longer in the route (deleted
        while the drag was in progress) are ignored.
        """
        if source_id == destination_id:
            return False

        from_index = self.store.index_of(source_id)
        to_index = self.store.index_of(destination_id)
        if from_index is None or to_index is None:
            logger.warning(
                f"Ignoring drag {source_id} -> {destination_id}: stop no longer in route"
            )
            return False

        return self.move_by_index(from_index, to_index)

    def move_by_index(self, from_index: int, to_index: int) -> bool:
        if from_index == to_index:
            return False
        self.store.reorder(from_index, to_index)
        logger.info(f"Moved stop from position {from_index + 1} to {to_index + 1}")
        return True
