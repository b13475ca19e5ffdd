"""Live collection of watch entries with pending addition/removal queues."""

import logging
import threading
from collections import deque
from typing import Deque, Dict, Iterator, List, Optional

from .models import Identity, WatchEntry

logger = logging.getLogger(__name__)


class WatchSet:
    """
    Ordered live sequence of watch entries plus two pending queues.
    
    Producers only call add() and discard(). The live sequence changes
    only inside merge_pending(), which the poll loop calls at a cycle
    boundary, so iteration never observes structural mutation.
    """

    def __init__(self):
        """Initialize an empty watch set."""
        self._entries: List[WatchEntry] = []
        self._additions: Deque[WatchEntry] = deque()
        self._removals: Deque[WatchEntry] = deque()
        self._by_identity: Dict[Identity, WatchEntry] = {}
        self._lock = threading.Lock()

    def add(self, entry: WatchEntry) -> None:
        """Queue an entry to become live at the next cycle boundary."""
        with self._lock:
            self._additions.append(entry)
            if entry.identity is not None:
                self._by_identity[entry.identity] = entry

    def discard(self, entry: WatchEntry) -> None:
        """Queue a live entry for removal at the next cycle boundary."""
        with self._lock:
            if entry not in self._removals:
                self._removals.append(entry)
            if entry.identity is not None and self._by_identity.get(entry.identity) is entry:
                del self._by_identity[entry.identity]

    def merge_pending(self) -> int:
        """
        Apply queued removals, then queued additions, as one step.
        
        Removed entries have their handles closed.
        
        Returns:
            Number of live entries after the merge
        """
        with self._lock:
            removed = []
            while self._removals:
                entry = self._removals.popleft()
                if entry in self._entries:
                    self._entries.remove(entry)
                removed.append(entry)
            while self._additions:
                self._entries.append(self._additions.popleft())
            count = len(self._entries)
        
        for entry in removed:
            logger.debug(f"Removed watch entry: {entry.root}")
            entry.close()
        return count

    def iter_cycle(self) -> Iterator[WatchEntry]:
        """
        Iterate one full cycle over the live entries.
        
        Only the thread calling merge_pending() may use this.
        """
        return iter(self._entries)

    def registered(self) -> List[WatchEntry]:
        """
        Return entries that count as registered for deduplication.
        
        That is every live entry not queued for removal, plus every
        pending addition.
        """
        with self._lock:
            live = [e for e in self._entries if e not in self._removals]
            return live + list(self._additions)

    def lookup(self, identity: Identity) -> Optional[WatchEntry]:
        """Return the registered entry for a (device, inode) pair, if any."""
        with self._lock:
            return self._by_identity.get(identity)

    def snapshot(self) -> List[WatchEntry]:
        """Return every live and pending entry."""
        with self._lock:
            return list(self._entries) + list(self._additions)

    def close_all(self) -> int:
        """
        Close the handle of every live and pending entry.
        
        Entries stay in place; closing an already closed handle is a no-op.
        
        Returns:
            Number of entries closed
        """
        entries = self.snapshot()
        for entry in entries:
            entry.close()
        return len(entries)

    @property
    def pending_additions(self) -> int:
        with self._lock:
            return len(self._additions)

    @property
    def pending_removals(self) -> int:
        with self._lock:
            return len(self._removals)

    def __len__(self) -> int:
        """Return the number of live entries."""
        with self._lock:
            return len(self._entries)
