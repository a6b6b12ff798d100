"""
FSR Topology Database
Per-originator link state with sequence freshness and aging
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)


class UpdateResult(Enum):
    """Outcome of applying a link state update"""
    ACCEPTED = "accepted"
    STALE = "stale"


class LinkStateEntry:
    """
    Most recently accepted link state of one originator
    """

    def __init__(self, sequence_number: int, neighbors: Iterable[str]):
        """
        Initialize entry

        Args:
            sequence_number: Originator sequence number
            neighbors: Originator's neighbor set
        """
        self.sequence_number = sequence_number
        self.age = 0
        self.neighbors: FrozenSet[str] = frozenset(neighbors)

    def increment_age(self, ticks: int = 1):
        self.age += ticks

    def __repr__(self) -> str:
        return (f"LinkStateEntry(seq={self.sequence_number}, "
                f"age={self.age}, "
                f"neighbors={sorted(self.neighbors)})")


class TopologyDatabase:
    """
    FSR topology table - one entry per known originator, including self
    """

    def __init__(self, self_address: str, lifetime: int):
        """
        Initialize topology database

        Args:
            self_address: This node's address
            lifetime: Aging ticks an entry survives without a fresh update
        """
        self.self_address = self_address
        self.lifetime = lifetime
        self.database: Dict[str, LinkStateEntry] = {}
        self.reset()

        logger.info(f"Initialized topology database for {self_address} (lifetime={lifetime})")

    def apply_lsp(self, originator: str, sequence_number: int,
                  neighbors: Iterable[str]) -> UpdateResult:
        """
        Apply a link state update received from the network

        Args:
            originator: Address whose link state this is
            sequence_number: Originator sequence number
            neighbors: Originator's neighbor set

        Returns:
            ACCEPTED if the entry was replaced, STALE if nothing changed
        """
        if originator == self.self_address:
            # Our own entry is only ever written locally
            logger.debug(f"Ignored network update for own entry (seq={sequence_number})")
            return UpdateResult.STALE

        existing = self.database.get(originator)
        if existing is not None and existing.sequence_number >= sequence_number:
            logger.debug(f"Discarded stale update from {originator}: "
                         f"seq={sequence_number} <= stored {existing.sequence_number}")
            return UpdateResult.STALE

        self.database[originator] = LinkStateEntry(sequence_number, neighbors)

        if existing is None:
            logger.info(f"Added link state for {originator} (seq={sequence_number})")
        else:
            logger.debug(f"Updated link state for {originator} (seq={sequence_number})")

        return UpdateResult.ACCEPTED

    def tick(self) -> List[str]:
        """
        Age every entry by one tick and drop expired ones

        The own entry ages but is never removed.

        Returns:
            Originators that were removed
        """
        expired = []

        for originator, entry in self.database.items():
            entry.increment_age()
            if entry.age > self.lifetime and originator != self.self_address:
                expired.append(originator)

        for originator in expired:
            logger.info(f"Removing aged-out link state for {originator}")
            del self.database[originator]

        return expired

    def own_entry(self) -> LinkStateEntry:
        """
        Get this node's own entry

        Returns:
            The own LinkStateEntry
        """
        return self.database[self.self_address]

    def refresh_own_entry(self, neighbors: Iterable[str],
                          sequence_number: Optional[int] = None) -> LinkStateEntry:
        """
        Replace the own entry from the local neighbor view

        Args:
            neighbors: Current neighbor set
            sequence_number: New sequence number (keeps the current one if None)

        Returns:
            The refreshed entry
        """
        current = self.database.get(self.self_address)
        if sequence_number is None:
            sequence_number = current.sequence_number if current else 0

        entry = LinkStateEntry(sequence_number, neighbors)
        self.database[self.self_address] = entry
        logger.debug(f"Refreshed own entry: {entry}")
        return entry

    def get_entry(self, originator: str) -> Optional[LinkStateEntry]:
        return self.database.get(originator)

    def get_all_entries(self) -> Dict[str, LinkStateEntry]:
        """
        Get a shallow copy of the database

        Returns:
            Dictionary of originator -> LinkStateEntry
        """
        return dict(self.database)

    def get_size(self) -> int:
        return len(self.database)

    def reset(self):
        """
        Drop all entries and recreate an empty own entry
        """
        self.database.clear()
        self.database[self.self_address] = LinkStateEntry(0, ())

    def clear(self):
        """
        Clear all link state, keeping only an empty own entry
        """
        count = len(self.database)
        self.reset()
        logger.info(f"Cleared {count} entries from topology database")

    def print_topology_table(self):
        """
        Print topology table in human-readable format
        """
        print(f"\n{'='*70}")
        print(f"Topology Table for {self.self_address}")
        print(f"{'='*70}")
        print(f"{'Originator':<18} {'Seq':<12} {'Age':<6} {'Neighbors'}")
        print(f"{'-'*70}")

        for originator, entry in sorted(self.database.items()):
            neighbors = ", ".join(sorted(entry.neighbors)) or "-"
            print(f"{originator:<18} {entry.sequence_number:<12} {entry.age:<6} {neighbors}")

        print(f"{'='*70}\n")

    def __contains__(self, originator: str) -> bool:
        return originator in self.database

    def __repr__(self) -> str:
        return f"TopologyDatabase(self={self.self_address}, entries={len(self.database)})"
