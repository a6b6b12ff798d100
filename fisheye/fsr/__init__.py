"""
Fisheye State Routing (FSR) Protocol Implementation

This package implements the FSR control plane:
- Neighbor discovery with periodic Hello packets
- Link state flooding bounded by a hop-count scope
- Aging topology database with sequence number freshness
- Unit-weight shortest path with next-hop compression

Main Classes:
    FSRAgent: Timer-driven control loop wiring the components together
    FSRConfig: Protocol options

    NeighborTable: Directly heard peers and their liveness deadlines
    TopologyDatabase: Per-originator link state
    FloodingEngine: Packet generation and the relay rule
    RouteComputer: Next-hop routes from the topology

Example:
    from fsr import FSRAgent, FSRConfig

    agent = FSRAgent(FSRConfig(), "10.0.0.1", "10.0.0.255", sock, sink, scheduler)
    agent.start()
"""

__version__ = "0.1.0"

# Main exports
from .agent import FSRAgent
from .config import FSRConfig

# Components
from .neighbor import NeighborTable, NeighborEntry
from .lsdb import TopologyDatabase, LinkStateEntry, UpdateResult
from .flooding import FloodingEngine, InboundResult
from .spf import RouteComputer, RouteEntry

# Packets
from .packets import (
    Hello, LinkStateUpdate, LspEntry, FSRPacket,
    encode, decode
)

# Errors
from .errors import FSRError, DecodeError, ConfigurationError, CollaboratorError

__all__ = [
    'FSRAgent', 'FSRConfig',
    'NeighborTable', 'NeighborEntry',
    'TopologyDatabase', 'LinkStateEntry', 'UpdateResult',
    'FloodingEngine', 'InboundResult',
    'RouteComputer', 'RouteEntry',
    'Hello', 'LinkStateUpdate', 'LspEntry', 'FSRPacket',
    'encode', 'decode',
    'FSRError', 'DecodeError', 'ConfigurationError', 'CollaboratorError',
]
