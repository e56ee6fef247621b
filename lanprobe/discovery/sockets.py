"""
UDP socket creation for discovery sessions.

Every session gets its own socket from a SocketFactory: either bound to one
interface address on an ephemeral port, or bound to a group port and joined
to the group on one interface.
"""

import logging
import socket
import struct

from .interfaces import IPAddress, NetworkInterface, address_family
from .targets import DiscoveryTarget

logger = logging.getLogger("lanprobe.discovery.sockets")


class SocketFactory:
    """Creates the OS sockets owned by discovery sessions."""

    def unicast(self, ip: IPAddress, interface: NetworkInterface) -> socket.socket:
        """
        Open a UDP socket bound to an interface address, ephemeral port.

        Outgoing multicast is pinned to the same interface so queries leave
        where replies are expected.

        Raises:
            OSError: If the socket cannot be created or bound
        """
        family = address_family(ip)
        sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            if family == socket.AF_INET6:
                scope_id = interface.index if ip.is_link_local else 0
                sock.bind((str(ip), 0, 0, scope_id))
                if interface.index:
                    sock.setsockopt(
                        socket.IPPROTO_IPV6,
                        socket.IPV6_MULTICAST_IF,
                        interface.index,
                    )
            else:
                sock.bind((str(ip), 0))
                sock.setsockopt(
                    socket.IPPROTO_IP,
                    socket.IP_MULTICAST_IF,
                    socket.inet_aton(str(ip)),
                )
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    def multicast(self, target: DiscoveryTarget, interface: NetworkInterface) -> socket.socket:
        """
        Open a UDP socket on the target's port joined to its group.

        Raises:
            OSError: If binding or joining the group fails
        """
        sock = socket.socket(target.family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError as e:
                    logger.debug("SO_REUSEPORT unavailable: %s", e)

            if target.family == socket.AF_INET6:
                # Keep IPv4 group traffic off the IPv6 listener
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
                sock.bind(("::", target.port))
                mreq = struct.pack(
                    "16sI",
                    socket.inet_pton(socket.AF_INET6, target.address),
                    interface.index,
                )
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP, mreq)
            else:
                local = interface.first_address(socket.AF_INET)
                if local is None:
                    raise OSError(f"interface {interface.name} has no IPv4 address")
                sock.bind(("", target.port))
                mreq = struct.pack(
                    "4s4s",
                    socket.inet_aton(target.address),
                    socket.inet_aton(str(local)),
                )
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock
