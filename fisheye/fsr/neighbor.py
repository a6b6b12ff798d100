"""
FSR Neighbor Table
Tracks directly heard peers and their liveness deadlines
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from lib.scheduler import Scheduler
from fsr.constants import TIMER_NEIGHBOR_EXPIRY

logger = logging.getLogger(__name__)


@dataclass
class NeighborEntry:
    """
    A directly heard peer
    """
    address: str
    expiry_deadline: float
    timer_handle: Optional[int] = None


def neighbor_expiry_token(address: str) -> tuple:
    """Scheduler token for a neighbor's expiry timer"""
    return (TIMER_NEIGHBOR_EXPIRY, address)


class NeighborTable:
    """
    Live neighbor set

    A neighbor is present iff it was heard from within the hold time.
    Every contact rearms the neighbor's one-shot expiry timer.
    """

    def __init__(self, hold_time: float, scheduler: Scheduler):
        """
        Initialize neighbor table

        Args:
            hold_time: Seconds a neighbor survives without contact
            scheduler: Scheduler used to arm expiry timers
        """
        self.hold_time = hold_time
        self.scheduler = scheduler
        self.neighbors: Dict[str, NeighborEntry] = {}

    def add_or_refresh(self, address: str, now: float) -> bool:
        """
        Record contact from a neighbor

        Args:
            address: Neighbor address
            now: Current time

        Returns:
            True if the neighbor was not known before
        """
        deadline = now + self.hold_time
        entry = self.neighbors.get(address)
        is_new = entry is None

        if is_new:
            entry = NeighborEntry(address=address, expiry_deadline=deadline)
            self.neighbors[address] = entry
            logger.info(f"Neighbor {address} up (expires at {deadline:.2f})")
        else:
            entry.expiry_deadline = deadline
            if entry.timer_handle is not None:
                self.scheduler.cancel(entry.timer_handle)
            logger.debug(f"Refreshed neighbor {address} (expires at {deadline:.2f})")

        entry.timer_handle = self.scheduler.schedule_after(
            self.hold_time, neighbor_expiry_token(address)
        )
        return is_new

    def expire(self, address: str) -> bool:
        """
        Remove a neighbor whose deadline passed

        The caller is responsible for recomputing routes afterwards.

        Args:
            address: Neighbor address

        Returns:
            True if the neighbor was present
        """
        entry = self.neighbors.pop(address, None)
        if entry is None:
            logger.debug(f"Expiry for unknown neighbor {address} ignored")
            return False

        if entry.timer_handle is not None:
            self.scheduler.cancel(entry.timer_handle)

        logger.warning(f"Neighbor {address} down (no contact for {self.hold_time}s)")
        return True

    def current_set(self) -> FrozenSet[str]:
        """
        Get the live neighbor set

        Returns:
            Frozen set of neighbor addresses
        """
        return frozenset(self.neighbors)

    def get_neighbor(self, address: str) -> Optional[NeighborEntry]:
        return self.neighbors.get(address)

    def get_neighbors(self) -> List[NeighborEntry]:
        return list(self.neighbors.values())

    def get_neighbor_count(self) -> int:
        return len(self.neighbors)

    def clear(self):
        """
        Drop every neighbor and cancel their expiry timers
        """
        for entry in self.neighbors.values():
            if entry.timer_handle is not None:
                self.scheduler.cancel(entry.timer_handle)
        count = len(self.neighbors)
        self.neighbors.clear()
        logger.info(f"Cleared {count} neighbors")

    def __contains__(self, address: str) -> bool:
        return address in self.neighbors

    def __len__(self) -> int:
        return len(self.neighbors)

    def __repr__(self) -> str:
        return f"NeighborTable(neighbors={sorted(self.neighbors)}, hold_time={self.hold_time})"
