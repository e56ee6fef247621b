"""
Socket sessions.

A session owns exactly one UDP socket for its whole life: it opens the
socket, optionally sends its queries to a multicast target, then receives,
decodes and reports datagrams until the socket fails, the decoder rejects a
frame, or the scan is stopped.
"""

import asyncio
import logging
import socket
from enum import Enum
from typing import Callable, Optional, Sequence

from .exceptions import DecodeError
from .reporter import Reporter
from .targets import DiscoveryTarget

logger = logging.getLogger("lanprobe.discovery.session")

SocketOpener = Callable[[], socket.socket]
Decoder = Callable[[bytes], list[str]]


class SessionState(str, Enum):
    """Lifecycle of a socket session."""

    BINDING = "binding"
    SENDING = "sending"
    RECEIVING = "receiving"
    TERMINATED = "terminated"


class SocketSession:
    """
    One socket, one optional query burst, one receive loop.

    Query sessions are given a target and the query datagrams; passive
    multicast sessions get neither and go straight to receiving.
    """

    def __init__(
        self,
        protocol: str,
        open_socket: SocketOpener,
        decode: Decoder,
        reporter: Reporter,
        target: Optional[DiscoveryTarget] = None,
        queries: Sequence[bytes] = (),
        recv_buffer_size: int = 9000,
        name: str = "",
    ):
        self.protocol = protocol
        self.target = target
        self.queries = list(queries)
        self.name = name or protocol
        self.state = SessionState.BINDING
        self.received = 0

        self._open_socket = open_socket
        self._decode = decode
        self._reporter = reporter
        self._recv_buffer_size = recv_buffer_size

    @property
    def is_passive(self) -> bool:
        return self.target is None

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Run the session to termination. Never raises except on cancellation."""
        stop = stop or asyncio.Event()
        self.state = SessionState.BINDING

        try:
            sock = self._open_socket()
        except OSError as e:
            logger.error("%s: %s", self.protocol, e)
            self.state = SessionState.TERMINATED
            return

        logger.debug("Session %s bound to %s", self.name, _local_address(sock))

        try:
            with sock:
                sock.setblocking(False)
                if self.target is not None and self.queries:
                    self.state = SessionState.SENDING
                    if not await self._send_queries(sock):
                        return
                self.state = SessionState.RECEIVING
                await self._receive_loop(sock, stop)
        finally:
            self.state = SessionState.TERMINATED
            logger.debug("Session %s terminated", self.name)

    async def _send_queries(self, sock: socket.socket) -> bool:
        """Send every query, skipping failed ones. Returns True if any was sent."""
        loop = asyncio.get_running_loop()
        sent = 0
        for query in self.queries:
            try:
                await loop.sock_sendto(sock, query, self.target.sockaddr)
                sent += 1
            except OSError as e:
                logger.error("%s: %s", self.protocol, e)
        logger.debug(
            "Session %s sent %d/%d queries to %s",
            self.name, sent, len(self.queries), self.target,
        )
        return sent > 0

    async def _receive_loop(self, sock: socket.socket, stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()

        while not stop.is_set():
            try:
                data, addr = await loop.sock_recvfrom(sock, self._recv_buffer_size)
            except OSError as e:
                logger.error("%s: %s", self.protocol, e)
                return

            self.received += 1
            source = _strip_zone(addr[0])

            try:
                records = self._decode(data)
            except DecodeError as e:
                logger.error("%s: %s", self.protocol, e)
                return

            for record in records:
                await self._reporter.print(source, record)


def _strip_zone(host: str) -> str:
    return host.split("%", 1)[0]


def _local_address(sock: socket.socket) -> str:
    try:
        return str(sock.getsockname())
    except OSError:
        return "?"
