"""
Fisheye State Routing (FSR) Protocol Constants
"""

# Transport
FSR_PORT = 6543               # UDP port for FSR control traffic
BROADCAST_ADDRESS = "255.255.255.255"

# FSR Packet Types
HELLO_PACKET = 1
LINK_STATE_UPDATE = 2

PACKET_TYPES = {
    1: "Hello",
    2: "Link State Update"
}

# Wire sizes (bytes)
FSR_HEADER_LENGTH = 12        # type(1) + source(4) + seq(4) + hops(1) + entries(2)
LSP_ENTRY_HEADER_LENGTH = 6   # node address(4) + neighbor count(2)
ADDRESS_LENGTH = 4

# Field limits
MAX_SEQUENCE_NUMBER = 0xFFFFFFFF
MAX_HOP_COUNT = 0xFF
MAX_LIST_LENGTH = 0xFFFF

# Hello packets are never relayed
HELLO_HOP_COUNT = 1

# Timer defaults (seconds unless noted)
HELLO_INTERVAL = 2.0
LSP_UPDATE_INTERVAL = 5.0
JITTER_BOUND = 0.5
FISHEYE_SCOPE = 10            # Relay hops for a Link State Update
TOPOLOGY_LIFETIME = 30        # Aging ticks before an entry is discarded
NEIGHBOR_EXPIRY_MULTIPLIER = 3
AGING_TICK = 1.0

# Timer tokens
TIMER_HELLO = "HelloTimer"
TIMER_LSP_UPDATE = "LspUpdateTimer"
TIMER_AGING = "AgingTimer"
TIMER_NEIGHBOR_EXPIRY = "NeighborExpiry"

# Owner tag for protocol-installed routes
ROUTE_OWNER_TAG = "fsr"
