"""
BoardCache - client-held model of a client's backlog board.

Holds two lists of PBI dicts: the last list the server confirmed and the
current list, which may carry an optimistic reorder not yet acknowledged.
On failure the cache never tries to undo a move; it is replaced wholesale
with a fresh server listing.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

PbiItem = Dict[str, Any]


def _renumber(items: List[PbiItem]) -> List[PbiItem]:
    return [dict(item, stack_position=index) for index, item in enumerate(items, start=1)]


def _sorted_by_position(items: Iterable[PbiItem]) -> List[PbiItem]:
    return sorted((dict(item) for item in items), key=lambda item: item['stack_position'])


def array_move(items: List[Any], from_index: int, to_index: int) -> List[Any]:
    """Return a copy of `items` with the element at from_index moved to to_index."""
    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


class BoardCache:
    """
    Optimistic board state for one client.

    Typical drag flow:
        ordered_ids = cache.move(active_id, over_id)
        try:
            submit(ordered_ids)
            cache.commit()
        except Exception:
            cache.reconcile(fetch_server_items())
    """

    def __init__(self, items: Optional[Iterable[PbiItem]] = None):
        self._confirmed: List[PbiItem] = _sorted_by_position(items or [])
        self._current: List[PbiItem] = [dict(item) for item in self._confirmed]

    @property
    def items(self) -> List[PbiItem]:
        return [dict(item) for item in self._current]

    @property
    def confirmed_items(self) -> List[PbiItem]:
        return [dict(item) for item in self._confirmed]

    @property
    def ordered_ids(self) -> List[str]:
        return [item['id'] for item in self._current]

    @property
    def is_dirty(self) -> bool:
        """True while an optimistic change awaits the server."""
        return self._current != self._confirmed

    def _index_of(self, pbi_id: str) -> Optional[int]:
        for index, item in enumerate(self._current):
            if item['id'] == pbi_id:
                return index
        return None

    def move(self, active_id: str, over_id: Optional[str]) -> Optional[List[str]]:
        """
        Move the dragged item into the slot of the item it was dropped over.

        Args:
            active_id: id of the dragged PBI
            over_id: id of the PBI under the drop point (None when dropped outside)

        Returns:
            The full ordered id list to submit as a bulk reorder, or None when
            nothing moved.
        """
        if over_id is None or active_id == over_id:
            return None

        from_index = self._index_of(active_id)
        to_index = self._index_of(over_id)
        if from_index is None or to_index is None:
            logger.warning(f"[BOARD] Ignoring move of unknown item: {active_id} -> {over_id}")
            return None

        self._current = _renumber(array_move(self._current, from_index, to_index))
        return self.ordered_ids

    def commit(self):
        """The server accepted the current order; it becomes the known-good list."""
        self._confirmed = [dict(item) for item in self._current]

    def reconcile(self, server_items: Iterable[PbiItem]):
        """Replace both lists with server truth, discarding any optimistic state."""
        self._confirmed = _sorted_by_position(server_items)
        self._current = [dict(item) for item in self._confirmed]
        logger.info(f"[BOARD] Reconciled with server ({len(self._current)} items)")

    def apply_move(self, active_id: str, over_id: Optional[str],
                   submit: Callable[[List[str]], Any],
                   fetch: Callable[[], Iterable[PbiItem]]) -> bool:
        """
        Optimistically move, submit the new order, then commit or reconcile.

        Returns True when the server accepted the order, False when the cache
        was reset from `fetch()` (or nothing moved).
        """
        ordered_ids = self.move(active_id, over_id)
        if ordered_ids is None:
            return False

        try:
            submit(ordered_ids)
        except Exception as e:
            logger.warning(f"[BOARD] Reorder rejected, reloading from server: {e}")
            self.reconcile(fetch())
            return False

        self.commit()
        return True

    def add(self, item: PbiItem):
        """Mirror a create response: the new PBI lands at its server position."""
        for items in (self._confirmed, self._current):
            items.append(dict(item))
            items.sort(key=lambda entry: entry['stack_position'])

    def replace(self, item: PbiItem):
        """Mirror an update response for one PBI."""
        for items in (self._confirmed, self._current):
            for index, existing in enumerate(items):
                if existing['id'] == item['id']:
                    items[index] = dict(item)
            items.sort(key=lambda entry: entry['stack_position'])

    def remove(self, pbi_id: str):
        """Mirror a delete: drop the PBI and close the gap it leaves."""
        self._confirmed = _renumber([item for item in self._confirmed if item['id'] != pbi_id])
        self._current = _renumber([item for item in self._current if item['id'] != pbi_id])
