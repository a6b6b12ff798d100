#!/usr/bin/env python3
"""
Fisheye - FSR Agent
Fisheye State Routing speaker: neighbor discovery, scope-limited link
state flooding and shortest-path route installation

Usage:
    sudo python3 fisheye.py \\
        --address 10.0.0.1/24 \\
        --fisheye-scope 3
"""

import asyncio
import argparse
import ipaddress
import logging
import signal
import sys
from typing import Optional

from fsr.agent import FSRAgent
from fsr.config import FSRConfig
from fsr.constants import (
    FSR_PORT, BROADCAST_ADDRESS, HELLO_INTERVAL, LSP_UPDATE_INTERVAL, JITTER_BOUND,
    FISHEYE_SCOPE, TOPOLOGY_LIFETIME, NEIGHBOR_EXPIRY_MULTIPLIER
)
from fsr.errors import FSRError
from lib.kernel_routes import KernelRouteManager, MemoryRouteTable
from lib.scheduler import AsyncioScheduler
from lib.socket_handler import FSRSocket

logger = logging.getLogger("fisheye")


def resolve_addresses(interface_address: str, broadcast: Optional[str] = None):
    """
    Split an interface address into self and broadcast addresses

    Args:
        interface_address: Address with prefix length (e.g., 10.0.0.1/24)
        broadcast: Explicit broadcast address (defaults to the subnet broadcast,
            or the limited broadcast when no prefix length is given)

    Returns:
        Tuple of (self_address, broadcast_address)
    """
    interface = ipaddress.IPv4Interface(interface_address)
    if broadcast is None and interface.network.prefixlen == 32:
        # No subnet given, fall back to the limited broadcast
        broadcast = BROADCAST_ADDRESS
    elif broadcast is None:
        broadcast = str(interface.network.broadcast_address)
    else:
        broadcast = str(ipaddress.IPv4Address(broadcast))
    return str(interface.ip), broadcast


async def run_agent(config: FSRConfig, self_address: str, broadcast_address: str,
                    dry_run: bool = False) -> int:
    """
    Run the agent until SIGINT/SIGTERM or transport loss

    Returns:
        Process exit code
    """
    loop = asyncio.get_running_loop()

    sock = FSRSocket("", config.port)
    if not await sock.open():
        logger.error("Failed to open FSR socket")
        return 1

    sink = MemoryRouteTable() if dry_run else KernelRouteManager()
    scheduler = AsyncioScheduler(loop)
    agent = FSRAgent(config, self_address, broadcast_address, sock, sink, scheduler)

    stopped = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stopped.set)

    agent.start()

    # Transport loss stops the agent from inside the callback
    def _on_closed():
        agent.on_closed()
        stopped.set()
    sock.on_closed = _on_closed

    try:
        await stopped.wait()
    finally:
        agent.topology.print_topology_table()
        agent.route_computer.print_routing_table()
        logger.info(f"Statistics: {agent.get_statistics()}")
        agent.stop()
        sock.close()

    return 0


def setup_logging(log_level: str = "INFO"):
    """
    Setup logging configuration

    Args:
        log_level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fisheye - FSR Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
  sudo python3 fisheye.py \\
      --address 10.0.0.1/24 \\
      --hello-interval 2 \\
      --fisheye-scope 3

Note:
  - Installing kernel routes requires root privileges (use --dry-run otherwise)
  - Every node in the subnet must use the same --port
        """
    )

    parser.add_argument("--address", required=True,
                        help="This node's address with prefix length (e.g., 10.0.0.1/24)")
    parser.add_argument("--broadcast", default=None,
                        help="Broadcast destination (default: subnet broadcast of --address)")
    parser.add_argument("--port", type=int, default=FSR_PORT,
                        help=f"FSR UDP port (default: {FSR_PORT})")
    parser.add_argument("--hello-interval", type=float, default=HELLO_INTERVAL,
                        help=f"Hello interval in seconds (default: {HELLO_INTERVAL})")
    parser.add_argument("--lsp-update-interval", type=float, default=LSP_UPDATE_INTERVAL,
                        help=f"LSP update interval in seconds (default: {LSP_UPDATE_INTERVAL})")
    parser.add_argument("--jitter", type=float, default=JITTER_BOUND,
                        help=f"Timer jitter bound in seconds (default: {JITTER_BOUND})")
    parser.add_argument("--fisheye-scope", type=int, default=FISHEYE_SCOPE,
                        help=f"Relay hops for link state updates (default: {FISHEYE_SCOPE})")
    parser.add_argument("--topology-lifetime", type=int, default=TOPOLOGY_LIFETIME,
                        help=f"Aging ticks before topology entries expire (default: {TOPOLOGY_LIFETIME})")
    parser.add_argument("--neighbor-expiry-multiplier", type=int, default=NEIGHBOR_EXPIRY_MULTIPLIER,
                        help=f"Hello intervals before a silent neighbor expires "
                             f"(default: {NEIGHBOR_EXPIRY_MULTIPLIER})")
    parser.add_argument("--dry-run", action="store_true",
                        help="Keep routes in memory instead of the kernel routing table")
    parser.add_argument("--log-level", default="INFO",
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Log level (default: INFO)")
    return parser


def main():
    """
    Main entry point
    """
    args = build_parser().parse_args()

    # Setup logging
    setup_logging(args.log_level)

    try:
        self_address, broadcast_address = resolve_addresses(args.address, args.broadcast)

        config = FSRConfig(
            hello_interval=args.hello_interval,
            lsp_update_interval=args.lsp_update_interval,
            jitter_bound=args.jitter,
            fisheye_scope=args.fisheye_scope,
            topology_lifetime=args.topology_lifetime,
            neighbor_expiry_multiplier=args.neighbor_expiry_multiplier,
            port=args.port
        ).validate()

        sys.exit(asyncio.run(run_agent(config, self_address, broadcast_address, args.dry_run)))

    except (ValueError, FSRError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
