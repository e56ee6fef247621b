"""Multicast discovery targets and family matching."""

import socket
from dataclasses import dataclass

from .interfaces import IPAddress, address_family


@dataclass(frozen=True)
class DiscoveryTarget:
    """A multicast group a protocol queries or listens on."""

    address: str
    port: int
    family: socket.AddressFamily

    @property
    def sockaddr(self) -> tuple:
        """Destination tuple for sendto()."""
        if self.family == socket.AF_INET6:
            return (self.address, self.port, 0, 0)
        return (self.address, self.port)

    @property
    def host(self) -> str:
        """host:port as written in an HTTP Host header."""
        if self.family == socket.AF_INET6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"

    def __str__(self) -> str:
        return self.host


def select_target(
    ip: IPAddress,
    ipv4_target: DiscoveryTarget,
    ipv6_target: DiscoveryTarget,
) -> DiscoveryTarget:
    """Pick the target whose family matches the local address."""
    if address_family(ip) == socket.AF_INET6:
        return ipv6_target
    return ipv4_target
