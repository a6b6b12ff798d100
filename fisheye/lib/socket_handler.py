"""
FSR Socket Handler - UDP broadcast transport for FSR control traffic
Handles send/receive of FSR packets on the subnet broadcast address
"""

import asyncio
import socket
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class DatagramTransport(ABC):
    """
    Unreliable, broadcast-capable datagram transport

    Received datagrams are delivered through on_data(data, source_ip);
    failures through on_error(exc) and on_closed().
    """

    def __init__(self):
        self.on_data: Optional[Callable[[bytes, str], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_closed: Optional[Callable[[], None]] = None

    @abstractmethod
    def send(self, packet: bytes, dest: str) -> bool:
        """
        Send a datagram, fire-and-forget

        Args:
            packet: Packet bytes
            dest: Destination IP (usually the broadcast address)

        Returns:
            True if handed to the network
        """

    def deliver(self, data: bytes, source_ip: str):
        if self.on_data:
            self.on_data(data, source_ip)

    def report_error(self, exc: Exception):
        if self.on_error:
            self.on_error(exc)

    def report_closed(self):
        if self.on_closed:
            self.on_closed()


class _FSRDatagramProtocol(asyncio.DatagramProtocol):
    """Forward asyncio datagram events to the owning FSRSocket"""

    def __init__(self, owner: "FSRSocket"):
        self.owner = owner

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        self.owner.deliver(data, addr[0])

    def error_received(self, exc: Exception):
        logger.warning(f"Socket error: {exc}")
        self.owner.report_error(exc)

    def connection_lost(self, exc: Optional[Exception]):
        if exc:
            logger.error(f"Socket closed with error: {exc}")
        self.owner.transport = None
        self.owner.report_closed()


class FSRSocket(DatagramTransport):
    """
    UDP socket bound to the FSR port with broadcast enabled
    """

    def __init__(self, bind_ip: str, port: int):
        """
        Initialize FSR socket handler

        Args:
            bind_ip: Local address to bind ("" for all interfaces)
            port: FSR UDP port
        """
        super().__init__()
        self.bind_ip = bind_ip
        self.port = port
        self.transport: Optional[asyncio.DatagramTransport] = None
        self.closing = False

    async def open(self) -> bool:
        """
        Open the UDP socket on the running event loop

        Returns:
            True if successful, False otherwise
        """
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

            # Allow quick restarts on the same port
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            # Needed to send to the subnet broadcast address
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

            sock.bind((self.bind_ip, self.port))
            sock.setblocking(False)

            loop = asyncio.get_running_loop()
            self.transport, _ = await loop.create_datagram_endpoint(
                lambda: _FSRDatagramProtocol(self), sock=sock
            )

            self.closing = False
            logger.info(f"Opened FSR socket on {self.bind_ip or '*'}:{self.port}")
            return True

        except PermissionError:
            logger.error(f"Permission denied binding UDP port {self.port}")
        except OSError as e:
            logger.error(f"Failed to open FSR socket: {e}")

        if sock is not None:
            sock.close()
        return False

    def send(self, packet: bytes, dest: str) -> bool:
        if not self.transport:
            logger.error("Socket not open")
            return False

        try:
            self.transport.sendto(packet, (dest, self.port))
            logger.debug(f"Sent {len(packet)} bytes to {dest}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to send packet to {dest}: {e}")
            self.report_error(e)
            return False

    def close(self):
        """
        Close socket
        """
        if self.transport:
            self.closing = True
            self.transport.close()
            self.transport = None
            logger.info("Closed FSR socket")

    def is_open(self) -> bool:
        return self.transport is not None

    def report_closed(self):
        # Our own close() is not a transport failure
        if self.closing:
            return
        super().report_closed()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
