"""
Network interface enumeration.

Lists the local interfaces and their bound IPv4/IPv6 addresses via psutil.
"""

import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import Iterable, Optional

import psutil

from .exceptions import InterfaceEnumerationError

logger = logging.getLogger("lanprobe.discovery.interfaces")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def parse_address(raw: str) -> IPAddress:
    """
    Extract the bare IP from an interface address string.

    Accepts plain addresses, CIDR notation ("192.168.1.10/24") and
    zone-qualified IPv6 ("fe80::1%eth0").

    Raises:
        ValueError: If the string is not an IP address.
    """
    text = raw.split("%", 1)[0]
    return ipaddress.ip_interface(text).ip


def address_family(ip: IPAddress) -> socket.AddressFamily:
    """Socket family matching an IP address."""
    return socket.AF_INET6 if ip.version == 6 else socket.AF_INET


@dataclass(frozen=True)
class NetworkInterface:
    """A local network interface and the addresses bound to it."""

    name: str
    index: int = 0
    addresses: tuple[str, ...] = field(default_factory=tuple)
    multicast: bool = True

    def ip_addresses(self) -> list[IPAddress]:
        """Bare IPs of every bound address. Raises ValueError on a bad entry."""
        return [parse_address(raw) for raw in self.addresses]

    def families(self) -> set[socket.AddressFamily]:
        """Address families present on this interface."""
        return {address_family(ip) for ip in self.ip_addresses()}

    def first_address(self, family: socket.AddressFamily) -> Optional[IPAddress]:
        for ip in self.ip_addresses():
            if address_family(ip) == family:
                return ip
        return None


def _interface_index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except OSError:
        return 0


def _supports_multicast(stats) -> bool:
    # psutil only reports flags on POSIX; assume capable elsewhere
    flags = getattr(stats, "flags", "")
    if not flags:
        return True
    return "multicast" in flags.split(",")


def enumerate_interfaces(names: Optional[Iterable[str]] = None) -> list[NetworkInterface]:
    """
    List the interfaces of this host that are up and carry IP addresses.

    Args:
        names: Optional allowlist of interface names

    Returns:
        Interfaces in the order psutil reports them

    Raises:
        InterfaceEnumerationError: If the OS query fails
    """
    try:
        if_addrs = psutil.net_if_addrs()
        if_stats = psutil.net_if_stats()
    except (OSError, RuntimeError) as e:
        raise InterfaceEnumerationError(e) from e

    wanted = set(names) if names else None
    interfaces = []

    for name, addrs in if_addrs.items():
        if wanted is not None and name not in wanted:
            continue

        stats = if_stats.get(name)
        if stats is not None and not stats.isup:
            logger.debug("Skipping interface %s: down", name)
            continue

        addresses = tuple(
            addr.address
            for addr in addrs
            if addr.family in (socket.AF_INET, socket.AF_INET6) and addr.address
        )
        if not addresses:
            continue

        interfaces.append(
            NetworkInterface(
                name=name,
                index=_interface_index(name),
                addresses=addresses,
                multicast=_supports_multicast(stats) if stats is not None else True,
            )
        )

    if wanted:
        missing = wanted - {iface.name for iface in interfaces}
        for name in sorted(missing):
            logger.warning("Interface %s not found or has no addresses", name)

    logger.info("Enumerated %d interfaces", len(interfaces))
    return interfaces
