"""
FSR Flooding Engine
Builds outgoing Hello/LSP packets and applies the scope-limited relay rule
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fsr.packets import Hello, LinkStateUpdate, LspEntry, FSRPacket
from fsr.neighbor import NeighborTable
from fsr.lsdb import TopologyDatabase, UpdateResult
from fsr.constants import HELLO_HOP_COUNT, MAX_SEQUENCE_NUMBER

logger = logging.getLogger(__name__)


@dataclass
class InboundResult:
    """
    What processing one inbound packet changed
    """
    dropped: bool = False
    neighbors_changed: bool = False
    accepted: int = 0
    stale: int = 0
    relay: Optional[LinkStateUpdate] = None

    @property
    def topology_changed(self) -> bool:
        return self.accepted > 0

    @property
    def needs_recompute(self) -> bool:
        return self.neighbors_changed or self.topology_changed


class FloodingEngine:
    """
    Generate and process FSR control packets
    """

    def __init__(self, self_address: str, fisheye_scope: int,
                 neighbor_table: NeighborTable, topology: TopologyDatabase):
        """
        Initialize flooding engine

        Args:
            self_address: This node's address
            fisheye_scope: Hop count given to locally originated updates
            neighbor_table: Live neighbor table
            topology: Topology database
        """
        self.self_address = self_address
        self.fisheye_scope = fisheye_scope
        self.neighbor_table = neighbor_table
        self.topology = topology

        # Shared by Hello and LSP packets
        self.sequence_number = 0

        logger.info(f"Initialized FloodingEngine for {self_address} (scope={fisheye_scope})")

    def next_sequence_number(self) -> int:
        self.sequence_number = (self.sequence_number + 1) & MAX_SEQUENCE_NUMBER
        if self.sequence_number == 0:
            logger.warning(f"Sequence number wrapped to 0 on {self.self_address}; "
                           f"peers will ignore updates until their entries expire")
        return self.sequence_number

    def generate_hello(self) -> Hello:
        """
        Build a Hello packet

        Returns:
            Hello carrying the next sequence number
        """
        return Hello(
            source_address=self.self_address,
            sequence_number=self.next_sequence_number(),
            hop_count=HELLO_HOP_COUNT
        )

    def generate_lsp(self) -> Optional[LinkStateUpdate]:
        """
        Build a Link State Update announcing the current neighbor set

        Returns:
            LinkStateUpdate, or None when there are no neighbors to announce
        """
        neighbors = self.neighbor_table.current_set()
        if not neighbors:
            logger.debug("No neighbors, skipping LSP generation")
            return None

        seq = self.next_sequence_number()
        self.topology.refresh_own_entry(neighbors, sequence_number=seq)

        entry = LspEntry(
            originator=self.self_address,
            sequence_number=seq,
            neighbors=tuple(sorted(neighbors))
        )

        logger.debug(f"Generated LSP seq={seq} with {len(neighbors)} neighbors")
        return LinkStateUpdate(
            source_address=self.self_address,
            sequence_number=seq,
            hop_count=self.fisheye_scope,
            entries=[entry]
        )

    def process_inbound(self, packet: FSRPacket, source_address: str, now: float) -> InboundResult:
        """
        Process a decoded packet

        Args:
            packet: Decoded Hello or LinkStateUpdate
            source_address: Transport-level sender
            now: Current time

        Returns:
            InboundResult describing state changes and any relay to send
        """
        if source_address == self.self_address or packet.source_address == self.self_address:
            logger.debug(f"Dropped self-originated packet (seq={packet.sequence_number})")
            return InboundResult(dropped=True)

        if isinstance(packet, Hello):
            return self._process_hello(source_address, now)

        return self._process_lsp(packet, source_address, now)

    def _process_hello(self, source_address: str, now: float) -> InboundResult:
        result = InboundResult()
        if self.neighbor_table.add_or_refresh(source_address, now):
            self._refresh_own_entry()
            result.neighbors_changed = True
        return result

    def _process_lsp(self, packet: LinkStateUpdate, source_address: str, now: float) -> InboundResult:
        result = InboundResult()

        # An LSP straight from its originator is also contact from a neighbor
        if packet.source_address == source_address:
            if self.neighbor_table.add_or_refresh(source_address, now):
                self._refresh_own_entry()
                result.neighbors_changed = True

        for entry in packet.entries:
            neighbor_set = set(entry.neighbors)
            neighbor_set.add(entry.originator)

            outcome = self.topology.apply_lsp(entry.originator, packet.sequence_number, neighbor_set)
            if outcome is UpdateResult.ACCEPTED:
                result.accepted += 1
            else:
                result.stale += 1

        if result.topology_changed and packet.hop_count > 1:
            result.relay = self.build_relay(packet)
            logger.debug(f"Relaying LSP from {packet.source_address} seq={packet.sequence_number} "
                         f"hops={result.relay.hop_count}")
        elif not result.topology_changed:
            logger.debug(f"Stale LSP from {packet.source_address} seq={packet.sequence_number}, not relayed")

        return result

    def build_relay(self, packet: LinkStateUpdate) -> LinkStateUpdate:
        """
        Copy an accepted update with one less hop of scope

        Args:
            packet: Accepted LinkStateUpdate with hop_count > 1

        Returns:
            Relay packet with the same source, sequence number and entries
        """
        return LinkStateUpdate(
            source_address=packet.source_address,
            sequence_number=packet.sequence_number,
            hop_count=packet.hop_count - 1,
            entries=list(packet.entries)
        )

    def expire_neighbor(self, address: str) -> bool:
        """
        Drop a neighbor whose expiry timer fired

        Returns:
            True if the neighbor set changed
        """
        if not self.neighbor_table.expire(address):
            return False
        self._refresh_own_entry()
        return True

    def _refresh_own_entry(self):
        self.topology.refresh_own_entry(self.neighbor_table.current_set())

    def __repr__(self) -> str:
        return (f"FloodingEngine(self={self.self_address}, "
                f"scope={self.fisheye_scope}, seq={self.sequence_number})")
