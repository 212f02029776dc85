"""
Last-selection-wins bookkeeping for in-flight fetches

Each fetch is tagged with a ticket for its slot (tree, dataset, areas, ...).
Issuing a new ticket supersedes older ones for the same slot, and a result is
only applied while its ticket is still the newest.
"""
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable


@dataclass(frozen=True)
class Ticket:
    slot: str
    seq: int
    selection: Hashable


class SelectionTracker:
    def __init__(self):
        self._lock = threading.RLock()
        self._latest: Dict[str, int] = {}
        self._seq = 0

    def issue(self, slot: str, selection: Hashable = None) -> Ticket:
        with self._lock:
            self._seq += 1
            self._latest[slot] = self._seq
            return Ticket(slot, self._seq, selection)

    def is_current(self, ticket: Ticket) -> bool:
        with self._lock:
            return self._latest.get(ticket.slot) == ticket.seq

    def commit(self, ticket: Ticket, apply: Callable[[], Any], depends_on: Iterable[Ticket] = ()) -> bool:
        """
        Run apply if ticket, and every ticket it depends on, is still current

        Returns:
            Whether apply ran
        """
        with self._lock:
            for t in (ticket, *depends_on):
                if self._latest.get(t.slot) != t.seq:
                    return False
            apply()
            return True
