"""
Base scanner protocol for device discovery.

A scanner turns the interface list into socket sessions: one query+listen
session per bound address, plus whatever passive listeners the protocol
needs. All scanners must implement this interface.
"""

import asyncio
import functools
import logging
import socket
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ...config import ScanConfig
from ..interfaces import IPAddress, NetworkInterface, address_family
from ..reporter import Reporter
from ..session import SocketSession
from ..sockets import SocketFactory
from ..targets import DiscoveryTarget, select_target

logger = logging.getLogger("lanprobe.discovery.scanners.base")


class BaseScanner(ABC):
    """
    Abstract base class for network scanners.

    Subclasses supply the protocol name, the two multicast targets and the
    codec (query builder and response decoder).
    """

    ipv4_target: DiscoveryTarget
    ipv6_target: DiscoveryTarget

    def __init__(
        self,
        reporter: Reporter,
        config: Optional[ScanConfig] = None,
        socket_factory: Optional[SocketFactory] = None,
        targets: Optional[tuple[DiscoveryTarget, DiscoveryTarget]] = None,
    ):
        self.reporter = reporter
        self.config = config or ScanConfig()
        self.sockets = socket_factory or SocketFactory()
        if targets is not None:
            self.ipv4_target, self.ipv6_target = targets

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        """Label of the discovery protocol (e.g., 'SSDP', 'mDNS')."""
        ...

    @abstractmethod
    def build_queries(self, target: DiscoveryTarget) -> list[bytes]:
        """Datagrams sent to the target when a query session starts."""
        ...

    @abstractmethod
    def decode(self, payload: bytes) -> list[str]:
        """
        Turn one inbound datagram into report messages.

        Raises:
            DecodeError: If the datagram makes the session unusable
        """
        ...

    def select_target(self, ip: IPAddress) -> DiscoveryTarget:
        return select_target(ip, self.ipv4_target, self.ipv6_target)

    def passive_sessions(self, interface: NetworkInterface) -> list[SocketSession]:
        """Listen-only sessions for an interface. None by default."""
        return []

    def query_session(self, interface: NetworkInterface, ip: IPAddress) -> SocketSession:
        target = self.select_target(ip)
        return SocketSession(
            protocol=self.protocol_name,
            open_socket=functools.partial(self.sockets.unicast, ip, interface),
            decode=self.decode,
            reporter=self.reporter,
            target=target,
            queries=self.build_queries(target),
            recv_buffer_size=self.config.recv_buffer_size,
            name=f"{self.protocol_name}/{interface.name}/{ip}",
        )

    def create_sessions(self, interfaces: Sequence[NetworkInterface]) -> list[SocketSession]:
        """Build every session for the given interfaces without starting them."""
        sessions: list[SocketSession] = []

        for interface in interfaces:
            try:
                addresses = interface.ip_addresses()
            except ValueError as e:
                logger.error("%s: %s: %s", self.protocol_name, interface.name, e)
                continue

            if not self.config.ipv6_enabled:
                addresses = [ip for ip in addresses if address_family(ip) != socket.AF_INET6]

            sessions.extend(self.passive_sessions(interface))
            for ip in addresses:
                sessions.append(self.query_session(interface, ip))

        logger.info(
            "%s: %d sessions on %d interfaces",
            self.protocol_name,
            len(sessions),
            len(interfaces),
        )
        return sessions

    def start(
        self,
        interfaces: Sequence[NetworkInterface],
        stop: Optional[asyncio.Event] = None,
    ) -> list[asyncio.Task]:
        """
        Launch one task per session.

        Returns:
            The session tasks, for the caller to await or cancel
        """
        return [
            asyncio.create_task(session.run(stop), name=session.name)
            for session in self.create_sessions(interfaces)
        ]
