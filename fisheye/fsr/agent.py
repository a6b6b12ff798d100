"""
FSR Agent - timer-driven control loop

Binds the neighbor table, topology database, flooding engine and route
computer to a transport, a routing sink and a scheduler. Every inbound
datagram and every timer firing runs to completion on the scheduler's
thread before the next one is handled.
"""

import logging
from typing import Dict, Hashable, Optional

from fsr.config import FSRConfig
from fsr.constants import (
    TIMER_HELLO, TIMER_LSP_UPDATE, TIMER_AGING, TIMER_NEIGHBOR_EXPIRY, AGING_TICK
)
from fsr.errors import CollaboratorError, DecodeError
from fsr.flooding import FloodingEngine
from fsr.lsdb import TopologyDatabase
from fsr.neighbor import NeighborTable
from fsr.packets import FSRPacket, LinkStateUpdate, decode, encode
from fsr.spf import RouteComputer, RouteEntry
from lib.kernel_routes import RoutingSink
from lib.scheduler import Scheduler
from lib.socket_handler import DatagramTransport


class FSRAgent:
    """
    Main FSR agent orchestrating all components
    """

    def __init__(self, config: FSRConfig, self_address: str, broadcast_address: str,
                 transport: Optional[DatagramTransport],
                 routing_sink: Optional[RoutingSink],
                 scheduler: Optional[Scheduler]):
        """
        Initialize FSR agent

        Args:
            config: Protocol configuration
            self_address: This node's address
            broadcast_address: Destination for all control traffic
            transport: Datagram transport
            routing_sink: Where computed routes are installed
            scheduler: Timer scheduler

        Raises:
            CollaboratorError: if a collaborator is missing
            ConfigurationError: if the configuration is invalid
        """
        if transport is None:
            raise CollaboratorError("transport")
        if routing_sink is None:
            raise CollaboratorError("routing sink")
        if scheduler is None:
            raise CollaboratorError("scheduler")

        self.config = config.validate()
        self.self_address = self_address
        self.broadcast_address = broadcast_address
        self.transport = transport
        self.routing_sink = routing_sink
        self.scheduler = scheduler

        # Components
        self.neighbor_table = NeighborTable(config.neighbor_hold_time, scheduler)
        self.topology = TopologyDatabase(self_address, config.topology_lifetime)
        self.flooding = FloodingEngine(self_address, config.fisheye_scope,
                                       self.neighbor_table, self.topology)
        self.route_computer = RouteComputer(self_address)

        # Periodic timer handles
        self.timer_handles: Dict[str, int] = {}

        # State
        self.running = False
        self.stats = self._empty_stats()
        self.logger = logging.getLogger("FSRAgent")

        self.logger.info(f"Initialized FSR Agent: {self_address} (broadcast {broadcast_address})")

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'packets_received': 0,
            'decode_errors': 0,
            'self_dropped': 0,
            'hellos_sent': 0,
            'lsps_sent': 0,
            'lsps_received': 0,
            'lsps_accepted': 0,
            'stale_updates': 0,
            'relays_sent': 0,
            'control_bytes_sent': 0,
            'transport_errors': 0,
            'route_computations': 0
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """
        Start FSR agent: bind callbacks and arm the periodic timers
        """
        if self.running:
            self.logger.debug("Agent already running")
            return

        self.logger.info("="*70)
        self.logger.info("Starting FSR Agent")
        self.logger.info("="*70)
        self.logger.info(f"  Address: {self.self_address}")
        self.logger.info(f"  Broadcast: {self.broadcast_address}")
        self.logger.info(f"  Hello interval: {self.config.hello_interval}s")
        self.logger.info(f"  LSP update interval: {self.config.lsp_update_interval}s")
        self.logger.info(f"  Fisheye scope: {self.config.fisheye_scope} hops")
        self.logger.info("="*70)

        self.topology.reset()

        self.transport.on_data = self.on_data
        self.transport.on_error = self.on_error
        self.transport.on_closed = self.on_closed
        self.scheduler.dispatch = self.handle_timer

        jitter = self.config.jitter_bound
        self.timer_handles[TIMER_HELLO] = self.scheduler.schedule_periodic(
            self.config.hello_interval, jitter, TIMER_HELLO,
            initial_delay=self.scheduler.rng.uniform(0, jitter)
        )
        self.timer_handles[TIMER_LSP_UPDATE] = self.scheduler.schedule_periodic(
            self.config.lsp_update_interval, jitter, TIMER_LSP_UPDATE
        )
        self.timer_handles[TIMER_AGING] = self.scheduler.schedule_periodic(
            AGING_TICK, 0, TIMER_AGING
        )

        self.running = True

    def stop(self):
        """
        Stop FSR agent and drop learned state

        The sequence counter keeps counting across a restart.
        """
        if not self.running:
            return

        self.logger.info("Stopping FSR Agent...")
        self.running = False

        for handle in self.timer_handles.values():
            self.scheduler.cancel(handle)
        self.timer_handles.clear()

        self.neighbor_table.clear()
        self.topology.clear()
        self.route_computer.routing_table.clear()
        self.routing_sink.clear_all(self.config.route_owner_tag)

        self.logger.info("FSR Agent stopped")

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def on_data(self, data: bytes, source_ip: str):
        """
        Process a received datagram

        Args:
            data: Packet bytes
            source_ip: Transport-level sender
        """
        if not self.running:
            return

        self.stats['packets_received'] += 1
        now = self.scheduler.now()

        try:
            packet = decode(data, received_at=now)
        except DecodeError as e:
            self.stats['decode_errors'] += 1
            self.logger.debug(f"Dropped packet from {source_ip}: {e}")
            return

        self.logger.debug(f"Received {type(packet).__name__} from {source_ip}: "
                          f"source={packet.source_address}, seq={packet.sequence_number}, "
                          f"hops={packet.hop_count}")

        if isinstance(packet, LinkStateUpdate):
            self.stats['lsps_received'] += 1

        result = self.flooding.process_inbound(packet, source_ip, now)

        if result.dropped:
            self.stats['self_dropped'] += 1
            return

        self.stats['lsps_accepted'] += result.accepted
        self.stats['stale_updates'] += result.stale

        if result.relay is not None:
            if self._send(result.relay):
                self.stats['relays_sent'] += 1

        if result.needs_recompute:
            self.recompute_routes()

    def on_error(self, exc: Exception):
        self.stats['transport_errors'] += 1
        self.logger.warning(f"Transport error (continuing): {exc}")

    def on_closed(self):
        self.logger.error("Transport closed - sending is no longer possible, stopping")
        self.stop()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def handle_timer(self, token: Hashable):
        """
        Dispatch a fired timer

        Args:
            token: Timer token
        """
        if not self.running:
            return

        self.logger.debug(f"Timer fired: {token!r}")

        if token == TIMER_HELLO:
            self.send_hello()
        elif token == TIMER_LSP_UPDATE:
            self.send_lsp()
        elif token == TIMER_AGING:
            self.age_topology()
        elif isinstance(token, tuple) and token[0] == TIMER_NEIGHBOR_EXPIRY:
            if self.flooding.expire_neighbor(token[1]):
                self.recompute_routes()
        else:
            self.logger.warning(f"Unknown timer token {token!r}")

    def send_hello(self):
        if self._send(self.flooding.generate_hello()):
            self.stats['hellos_sent'] += 1

    def send_lsp(self):
        lsp = self.flooding.generate_lsp()
        if lsp is None:
            return
        if self._send(lsp):
            self.stats['lsps_sent'] += 1
            self.logger.info(f"Sent LSP seq={lsp.sequence_number} "
                             f"with {len(lsp.entries[0].neighbors)} neighbors")

    def age_topology(self):
        expired = self.topology.tick()
        if expired:
            self.logger.info(f"Aged out {len(expired)} topology entries: {expired}")
            self.recompute_routes()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def recompute_routes(self) -> Dict[str, RouteEntry]:
        """
        Recompute routes and replace the installed set

        Returns:
            Dictionary of destination -> RouteEntry
        """
        routes = self.route_computer.recompute(self.topology, self.neighbor_table.current_set())
        self.stats['route_computations'] += 1

        owner = self.config.route_owner_tag
        self.routing_sink.clear_all(owner)

        failed = 0
        for route in routes.values():
            if not self.routing_sink.install(route.destination, route.next_hop, route.metric, owner):
                failed += 1

        if failed:
            self.logger.warning(f"Failed to install {failed} of {len(routes)} routes")
        else:
            self.logger.info(f"Installed {len(routes)} routes")

        return routes

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(self, packet: FSRPacket) -> bool:
        data = encode(packet)
        if not self.transport.send(data, self.broadcast_address):
            return False
        self.stats['control_bytes_sent'] += len(data)
        return True

    def get_statistics(self) -> Dict[str, int]:
        return dict(self.stats)

    def get_status(self) -> Dict:
        """
        Get agent status

        Returns:
            Status dictionary
        """
        return {
            'address': self.self_address,
            'running': self.running,
            'neighbors': self.neighbor_table.get_neighbor_count(),
            'topology_size': self.topology.get_size(),
            'routes': len(self.route_computer.routing_table),
            'sequence_number': self.flooding.sequence_number
        }

    def __repr__(self) -> str:
        return (f"FSRAgent(address={self.self_address}, "
                f"running={self.running}, "
                f"neighbors={self.neighbor_table.get_neighbor_count()})")
