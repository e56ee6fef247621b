"""
SSDP (Simple Service Discovery Protocol) scanner.

Discovers UPnP devices on the local network using multicast M-SEARCH
requests. Each reply is reported by its Server header.
"""

import logging
import socket

import h11

from ..targets import DiscoveryTarget
from .base import BaseScanner

logger = logging.getLogger("lanprobe.discovery.scanners.ssdp")

PROTOCOL = "SSDP"

SSDP_PORT = 1900
SSDP4_TARGET = DiscoveryTarget("239.255.255.250", SSDP_PORT, socket.AF_INET)
SSDP6_TARGET = DiscoveryTarget("ff0e::c", SSDP_PORT, socket.AF_INET6)

# Reported in place of the server identity when a reply is not a valid HTTP head
PARSER_ERROR = "[parser error]"

# M-SEARCH request template
MSEARCH_TEMPLATE = (
    "M-SEARCH * HTTP/1.1\r\n"
    "HOST: {host}\r\n"
    "MAN: \"ssdp:discover\"\r\n"
    "ST: {st}\r\n"
    "MX: {mx}\r\n"
    "\r\n"
)


def build_query(target: DiscoveryTarget, search_target: str = "ssdp:all", mx: int = 1) -> bytes:
    """Render the M-SEARCH request for a multicast target."""
    return MSEARCH_TEMPLATE.format(host=target.host, st=search_target, mx=mx).encode("ascii")


def parse_response(payload: bytes) -> str:
    """
    Extract the Server header from an SSDP reply.

    The payload must be a complete HTTP response head. Anything else,
    including a head without a Server header, yields PARSER_ERROR.
    """
    conn = h11.Connection(our_role=h11.CLIENT)
    # h11 only reads a response once a request is outstanding
    conn.send(h11.Request(method="M-SEARCH", target="*", headers=[("Host", SSDP4_TARGET.host)]))
    conn.receive_data(payload)

    try:
        event = conn.next_event()
    except h11.RemoteProtocolError as e:
        logger.debug("Unparsable SSDP reply: %s", e)
        return PARSER_ERROR

    if not isinstance(event, (h11.Response, h11.InformationalResponse)):
        logger.debug("Incomplete SSDP reply (%d bytes)", len(payload))
        return PARSER_ERROR

    for name, value in event.headers:
        if name == b"server":
            return value.decode("utf-8", errors="replace")

    logger.debug("SSDP reply without Server header")
    return PARSER_ERROR


class SSDPScanner(BaseScanner):
    """
    SSDP/UPnP network scanner.

    Sends one M-SEARCH per interface address and reports every reply
    received on that address.
    """

    ipv4_target = SSDP4_TARGET
    ipv6_target = SSDP6_TARGET

    @property
    def protocol_name(self) -> str:
        return PROTOCOL

    def build_queries(self, target: DiscoveryTarget) -> list[bytes]:
        return [build_query(target, self.config.ssdp_search_target, self.config.ssdp_mx)]

    def decode(self, payload: bytes) -> list[str]:
        return [parse_response(payload)]
