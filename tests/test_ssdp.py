"""
Tests for the SSDP codec and scanner.

Covers:
- M-SEARCH rendering for IPv4 and IPv6 targets
- Server header extraction from well-formed replies
- The parser-error placeholder for malformed, truncated and header-less replies
- Target selection by address family
"""

import asyncio
import ipaddress
import socket

import pytest

from lanprobe.config import ScanConfig
from lanprobe.discovery.reporter import Reporter
from lanprobe.discovery.scanners.ssdp import (
    PARSER_ERROR,
    SSDP4_TARGET,
    SSDP6_TARGET,
    SSDPScanner,
    build_query,
    parse_response,
)
from lanprobe.discovery.targets import DiscoveryTarget

HUE_REPLY = (
    b"HTTP/1.1 200 OK\r\n"
    b"CACHE-CONTROL: max-age=100\r\n"
    b"EXT:\r\n"
    b"LOCATION: http://192.168.1.20:80/description.xml\r\n"
    b"SERVER: Linux/3.14.0 UPnP/1.0 IpBridge/1.50.0\r\n"
    b"ST: upnp:rootdevice\r\n"
    b"USN: uuid:2f402f80-da50-11e1-9b23-001788255acc::upnp:rootdevice\r\n"
    b"\r\n"
)


def _scanner(**overrides) -> SSDPScanner:
    return SSDPScanner(Reporter(asyncio.Queue(), "SSDP"), config=ScanConfig(**overrides))


# ---------------------------------------------------------------------------
# build_query
# ---------------------------------------------------------------------------


class TestBuildQuery:

    def test_ipv4_request(self):
        assert build_query(SSDP4_TARGET) == (
            b"M-SEARCH * HTTP/1.1\r\n"
            b"HOST: 239.255.255.250:1900\r\n"
            b"MAN: \"ssdp:discover\"\r\n"
            b"ST: ssdp:all\r\n"
            b"MX: 1\r\n"
            b"\r\n"
        )

    def test_ipv6_host_is_bracketed(self):
        query = build_query(SSDP6_TARGET)
        assert b"HOST: [ff0e::c]:1900\r\n" in query

    def test_ends_with_blank_line(self):
        assert build_query(SSDP4_TARGET).endswith(b"\r\n\r\n")

    def test_search_target_and_mx(self):
        query = build_query(SSDP4_TARGET, search_target="upnp:rootdevice", mx=3)
        assert b"ST: upnp:rootdevice\r\n" in query
        assert b"MX: 3\r\n" in query

    def test_scanner_uses_config(self):
        scanner = _scanner(ssdp_search_target="urn:dial-multiscreen-org:service:dial:1", ssdp_mx=2)
        [query] = scanner.build_queries(SSDP4_TARGET)
        assert b"ST: urn:dial-multiscreen-org:service:dial:1\r\n" in query
        assert b"MX: 2\r\n" in query


# ---------------------------------------------------------------------------
# parse_response
# ---------------------------------------------------------------------------


class TestParseResponse:

    def test_server_header(self):
        assert parse_response(HUE_REPLY) == "Linux/3.14.0 UPnP/1.0 IpBridge/1.50.0"

    def test_header_name_case_insensitive(self):
        reply = b"HTTP/1.1 200 OK\r\nserver: MiniUPnPd/2.1\r\n\r\n"
        assert parse_response(reply) == "MiniUPnPd/2.1"

    def test_garbage(self):
        assert parse_response(b"\x00\x01garbage that is not http") == PARSER_ERROR

    def test_request_instead_of_response(self):
        notify = b"NOTIFY * HTTP/1.1\r\nHOST: 239.255.255.250:1900\r\nSERVER: x\r\n\r\n"
        assert parse_response(notify) == PARSER_ERROR

    def test_truncated_head(self):
        assert parse_response(HUE_REPLY[:60]) == PARSER_ERROR

    def test_empty_payload(self):
        assert parse_response(b"") == PARSER_ERROR

    def test_missing_server_header(self):
        reply = b"HTTP/1.1 200 OK\r\nST: upnp:rootdevice\r\n\r\n"
        assert parse_response(reply) == PARSER_ERROR

    def test_decode_wraps_in_list(self):
        assert _scanner().decode(HUE_REPLY) == ["Linux/3.14.0 UPnP/1.0 IpBridge/1.50.0"]


# ---------------------------------------------------------------------------
# Target selection
# ---------------------------------------------------------------------------


class TestTargets:

    def test_ipv4_address_uses_ipv4_group(self):
        target = _scanner().select_target(ipaddress.ip_address("192.168.1.10"))
        assert target == SSDP4_TARGET
        assert target.family == socket.AF_INET

    def test_ipv6_address_uses_ipv6_group(self):
        target = _scanner().select_target(ipaddress.ip_address("fe80::1"))
        assert target == SSDP6_TARGET
        assert target.sockaddr == ("ff0e::c", 1900, 0, 0)

    def test_target_override(self):
        override = (DiscoveryTarget("127.0.0.1", 4242, socket.AF_INET), SSDP6_TARGET)
        scanner = SSDPScanner(Reporter(asyncio.Queue(), "SSDP"), targets=override)
        assert scanner.select_target(ipaddress.ip_address("10.0.0.1")).port == 4242
        # Class defaults are untouched
        assert SSDPScanner.ipv4_target == SSDP4_TARGET
