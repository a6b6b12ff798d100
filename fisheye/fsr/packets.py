"""
FSR Packet Definitions using Scapy
Wire codec for the Hello and Link State Update packets

All fields are big-endian with no padding:

    type(1) | source_address(4) | sequence_number(4) | hop_count(1) |
    entry_count(2) | entries[entry_count]

    entry = node_address(4) | neighbor_count(2) | neighbors[neighbor_count] x 4
"""

import time
import struct
import ipaddress
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from scapy.packet import Packet
from scapy.fields import (
    ByteField, ByteEnumField, IntField, IPField,
    FieldLenField, FieldListField, PacketListField
)

from fsr.constants import (
    HELLO_PACKET, LINK_STATE_UPDATE, PACKET_TYPES, HELLO_HOP_COUNT,
    FSR_HEADER_LENGTH, LSP_ENTRY_HEADER_LENGTH, ADDRESS_LENGTH,
    MAX_SEQUENCE_NUMBER, MAX_HOP_COUNT, MAX_LIST_LENGTH
)
from fsr.errors import DecodeError


# ============================================================================
# Wire layers
# ============================================================================

class LSPEntry(Packet):
    """
    Single link state entry: an originator and its neighbor list
    """
    name = "FSR LSP Entry"
    fields_desc = [
        IPField("node_address", "0.0.0.0"),
        FieldLenField("neighbor_count", None, count_of="neighbors", fmt="H"),
        FieldListField("neighbors", [], IPField("", "0.0.0.0"),
                       count_from=lambda pkt: pkt.neighbor_count)
    ]

    def extract_padding(self, s):
        # Entries are packed back to back; hand the rest to the next one
        return b"", s


class FSRHeader(Packet):
    """
    FSR packet - header followed by the LSP entries
    Hello packets carry zero entries
    """
    name = "FSR"
    fields_desc = [
        ByteEnumField("type", HELLO_PACKET, PACKET_TYPES),
        IPField("source_address", "0.0.0.0"),
        IntField("sequence_number", 0),
        ByteField("hop_count", HELLO_HOP_COUNT),
        FieldLenField("entry_count", None, count_of="entries", fmt="H"),
        PacketListField("entries", [], LSPEntry,
                        count_from=lambda pkt: pkt.entry_count)
    ]


# ============================================================================
# Protocol packets
# ============================================================================

@dataclass(frozen=True)
class LspEntry:
    """
    Link state of one originator as carried in a Link State Update

    The sequence number is not on the wire; it is taken from the
    enclosing packet when decoding.
    """
    originator: str
    sequence_number: int
    neighbors: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "neighbors", tuple(self.neighbors))


@dataclass
class Hello:
    """
    Liveness announcement, never relayed
    """
    source_address: str
    sequence_number: int
    hop_count: int = HELLO_HOP_COUNT
    received_at: Optional[float] = field(default=None, compare=False)

    packet_type = HELLO_PACKET


@dataclass
class LinkStateUpdate:
    """
    Scope-limited link state announcement
    """
    source_address: str
    sequence_number: int
    hop_count: int
    entries: List[LspEntry] = field(default_factory=list)
    received_at: Optional[float] = field(default=None, compare=False)

    packet_type = LINK_STATE_UPDATE


FSRPacket = Union[Hello, LinkStateUpdate]


# ============================================================================
# Encoding
# ============================================================================

def _check_range(name: str, value: int, maximum: int):
    if not isinstance(value, int) or not 0 <= value <= maximum:
        raise ValueError(f"{name} must be an integer within 0..{maximum}, got {value!r}")


def _check_address(address: str):
    # Validate up front so scapy never tries to resolve it as a hostname
    try:
        ipaddress.IPv4Address(address)
    except (ipaddress.AddressValueError, ValueError) as e:
        raise ValueError(f"Invalid IPv4 address {address!r}: {e}") from e


def _build_entry(entry: LspEntry) -> LSPEntry:
    _check_address(entry.originator)
    if len(entry.neighbors) > MAX_LIST_LENGTH:
        raise ValueError(f"Too many neighbors for {entry.originator}: {len(entry.neighbors)}")
    for neighbor in entry.neighbors:
        _check_address(neighbor)

    return LSPEntry(node_address=entry.originator, neighbors=list(entry.neighbors))


def encode(packet: FSRPacket) -> bytes:
    """
    Serialize an FSR packet

    Args:
        packet: Hello or LinkStateUpdate

    Returns:
        Packet as bytes

    Raises:
        ValueError: if a field does not fit its wire width
        TypeError: if packet is not an FSR packet
    """
    if isinstance(packet, Hello):
        entries: Sequence[LspEntry] = []
    elif isinstance(packet, LinkStateUpdate):
        entries = packet.entries
        if len(entries) > MAX_LIST_LENGTH:
            raise ValueError(f"Too many LSP entries: {len(entries)}")
    else:
        raise TypeError(f"Cannot encode {type(packet).__name__} as an FSR packet")

    _check_address(packet.source_address)
    _check_range("sequence_number", packet.sequence_number, MAX_SEQUENCE_NUMBER)
    _check_range("hop_count", packet.hop_count, MAX_HOP_COUNT)

    header = FSRHeader(
        type=packet.packet_type,
        source_address=packet.source_address,
        sequence_number=packet.sequence_number,
        hop_count=packet.hop_count,
        entries=[_build_entry(entry) for entry in entries]
    )

    return bytes(header)


# ============================================================================
# Decoding
# ============================================================================

def _validate_length(data: bytes) -> int:
    """
    Walk the declared structure without dissecting it

    Args:
        data: Raw packet bytes

    Returns:
        Number of bytes covered by the declared header and entries

    Raises:
        DecodeError: if any declared field or array runs past the buffer
    """
    total = len(data)

    if total < FSR_HEADER_LENGTH:
        raise DecodeError(f"shorter than the {FSR_HEADER_LENGTH}-byte header", total)

    if data[0] not in PACKET_TYPES:
        raise DecodeError(f"unknown packet type {data[0]}", total)

    entry_count = struct.unpack_from("!H", data, FSR_HEADER_LENGTH - 2)[0]
    offset = FSR_HEADER_LENGTH

    for index in range(entry_count):
        if offset + LSP_ENTRY_HEADER_LENGTH > total:
            raise DecodeError(f"entry {index} of {entry_count} truncated", total)

        neighbor_count = struct.unpack_from("!H", data, offset + ADDRESS_LENGTH)[0]
        offset += LSP_ENTRY_HEADER_LENGTH

        if offset + neighbor_count * ADDRESS_LENGTH > total:
            raise DecodeError(
                f"entry {index} declares {neighbor_count} neighbors past end of buffer", total
            )
        offset += neighbor_count * ADDRESS_LENGTH

    return offset


def decode(data: bytes, received_at: Optional[float] = None) -> FSRPacket:
    """
    Parse raw bytes into an FSR packet

    Args:
        data: Raw packet bytes
        received_at: Local arrival time (defaults to now)

    Returns:
        Hello or LinkStateUpdate stamped with the arrival time

    Raises:
        DecodeError: if the buffer is truncated or malformed
    """
    data = bytes(data)
    length = _validate_length(data)

    try:
        header = FSRHeader(data[:length])
    except Exception as e:
        raise DecodeError(f"dissection failed: {e}", len(data)) from e

    if received_at is None:
        received_at = time.time()

    if header.type == HELLO_PACKET:
        return Hello(
            source_address=header.source_address,
            sequence_number=header.sequence_number,
            hop_count=header.hop_count,
            received_at=received_at
        )

    entries = [
        LspEntry(
            originator=entry.node_address,
            sequence_number=header.sequence_number,
            neighbors=tuple(entry.neighbors)
        )
        for entry in header.entries
    ]

    return LinkStateUpdate(
        source_address=header.source_address,
        sequence_number=header.sequence_number,
        hop_count=header.hop_count,
        entries=entries,
        received_at=received_at
    )
