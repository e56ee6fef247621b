"""
mDNS (Multicast DNS) scanner.

Probes a fixed list of service types with PTR questions and reports every
answer record received, both on the per-address query sockets and on the
joined multicast groups.
"""

import functools
import logging
import socket
from typing import Iterable

from zeroconf import DNSOutgoing, DNSQuestion
from zeroconf.const import _CLASS_IN, _CLASS_UNIQUE, _FLAGS_QR_QUERY, _TYPE_PTR

from ...config import DEFAULT_MDNS_SERVICES
from ..exceptions import DecodeError
from ..interfaces import NetworkInterface
from ..session import SocketSession
from ..targets import DiscoveryTarget
from .base import BaseScanner
from .dnswire import MessageError, parse_message

logger = logging.getLogger("lanprobe.discovery.scanners.mdns")

PROTOCOL = "mDNS"

MDNS_PORT = 5353
MDNS4_TARGET = DiscoveryTarget("224.0.0.251", MDNS_PORT, socket.AF_INET)
MDNS6_TARGET = DiscoveryTarget("ff02::fb", MDNS_PORT, socket.AF_INET6)


def build_query(service: str) -> bytes:
    """
    Build a single-question PTR query for a service type.

    The question asks for a unicast reply (RFC 6762, section 18.12: top bit
    of qclass) and the header flags are all zero, so RD is cleared.
    """
    out = DNSOutgoing(_FLAGS_QR_QUERY, multicast=True)
    out.add_question(DNSQuestion(service, _TYPE_PTR, _CLASS_IN | _CLASS_UNIQUE))
    return out.packets()[0]


def build_queries(services: Iterable[str] = DEFAULT_MDNS_SERVICES) -> list[bytes]:
    """One independent query message per service type."""
    return [build_query(service) for service in services]


def parse_response(payload: bytes) -> list[str]:
    """
    Decode a DNS message and render its answer section, one line per record.

    Authority and additional records are validated but not reported.

    Raises:
        DecodeError: If any part of the payload is malformed
    """
    try:
        message = parse_message(payload)
    except MessageError as e:
        raise DecodeError(PROTOCOL, str(e)) from e
    return [str(answer) for answer in message.answers]


class MDNSScanner(BaseScanner):
    """
    mDNS network scanner.

    Sends one PTR query per configured service type from every interface
    address, and additionally joins the mDNS groups on each
    multicast-capable interface to pick up unsolicited announcements.
    """

    ipv4_target = MDNS4_TARGET
    ipv6_target = MDNS6_TARGET

    @property
    def protocol_name(self) -> str:
        return PROTOCOL

    def build_queries(self, target: DiscoveryTarget) -> list[bytes]:
        return build_queries(self.config.mdns_services)

    def decode(self, payload: bytes) -> list[str]:
        return parse_response(payload)

    def passive_sessions(self, interface: NetworkInterface) -> list[SocketSession]:
        if not self.config.mdns_passive_listen or not interface.multicast:
            return []

        sessions = []
        families = interface.families()
        for family, target in (
            (socket.AF_INET, self.ipv4_target),
            (socket.AF_INET6, self.ipv6_target),
        ):
            if family not in families:
                continue
            if family == socket.AF_INET6 and not self.config.ipv6_enabled:
                continue
            sessions.append(
                SocketSession(
                    protocol=self.protocol_name,
                    open_socket=functools.partial(self.sockets.multicast, target, interface),
                    decode=self.decode,
                    reporter=self.reporter,
                    recv_buffer_size=self.config.recv_buffer_size,
                    name=f"{self.protocol_name}/{interface.name}/{target.address}",
                )
            )
        return sessions
