"""Canonical stop ordering for a route editing session.

The store is the only writer of route order. Manual moves go through
``reorder`` and optimizer results through ``replace_ordering``; both notify
subscribers so derived travel data and metrics can be recomputed.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from ...errors import ValidationError
from ...models.domain import Stop

logger = logging.getLogger(__name__)

OrderingListener = Callable[[str], None]


class OrderingStore:
    def __init__(self, stops: Iterable[Stop] | None = None) -> None:
        self._stops: list[Stop] = []
        self._listeners: list[OrderingListener] = []
        self.version = 0
        if stops is not None:
            self.initialize(stops)

    def __len__(self) -> int:
        return len(self._stops)

    def subscribe(self, listener: OrderingListener) -> Callable[[], None]:
        """Register a callback invoked with the mutation kind after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def initialize(self, stops: Iterable[Stop]) -> None:
        seeded = list(stops)
        _ensure_unique(seeded)
        self._stops = seeded
        self._changed("initialize")

    def get_ordering(self) -> list[Stop]:
        return list(self._stops)

    def ids(self) -> list[str]:
        return [stop.id for stop in self._stops]

    def index_of(self, stop_id: str) -> int | None:
        for index, stop in enumerate(self._stops):
            if stop.id == stop_id:
                return index
        return None

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move the stop at ``from_index`` to ``to_index``, shifting the stops in between."""
        size = len(self._stops)
        if not (0 <= from_index < size) or not (0 <= to_index < size):
            raise IndexError(
                f"Reorder indices out of range: {from_index} -> {to_index} for {size} stops."
            )
        if from_index == to_index:
            return
        stop = self._stops.pop(from_index)
        self._stops.insert(to_index, stop)
        self._changed("reorder")

    def replace_ordering(self, new_ordering: Sequence[Stop]) -> None:
        """Swap in a full new ordering that must be a permutation of the current stops."""
        candidate = list(new_ordering)
        candidate_ids = [stop.id for stop in candidate]
        if len(set(candidate_ids)) != len(candidate_ids):
            raise ValidationError("Replacement ordering contains duplicate stops.")

        current_ids = set(self.ids())
        if set(candidate_ids) != current_ids:
            missing = sorted(current_ids - set(candidate_ids))
            unknown = sorted(set(candidate_ids) - current_ids)
            raise ValidationError(
                "Replacement ordering does not match the stops in this route "
                f"(missing: {missing or 'none'}, unknown: {unknown or 'none'})."
            )

        # keep the store's own Stop records, the replacement only decides order
        by_id = {stop.id: stop for stop in self._stops}
        self._stops = [by_id[stop_id] for stop_id in candidate_ids]
        self._changed("replace")

    def discard(self, stop_id: str) -> bool:
        """Drop a stop whose job template was deleted outside the editing session."""
        index = self.index_of(stop_id)
        if index is None:
            return False
        del self._stops[index]
        self._changed("discard")
        return True

    def _changed(self, kind: str) -> None:
        self.version += 1
        logger.debug(f"Ordering {kind} -> version {self.version}: {self.ids()}")
        for listener in list(self._listeners):
            listener(kind)


def _ensure_unique(stops: Sequence[Stop]) -> None:
    seen: set[str] = set()
    for stop in stops:
        if stop.id in seen:
            raise ValidationError(f"Duplicate stop id '{stop.id}' in route.")
        seen.add(stop.id)
