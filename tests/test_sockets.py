"""
Tests for SocketFactory option handling.

socket.socket is patched with a MagicMock so the calls made on the socket can
be inspected in order; no group is actually joined.
"""

import socket
import struct
from unittest.mock import MagicMock, call, patch

import pytest

from lanprobe.discovery.interfaces import NetworkInterface
from lanprobe.discovery.scanners.mdns import MDNS4_TARGET, MDNS6_TARGET
from lanprobe.discovery.sockets import SocketFactory

ETH0 = NetworkInterface("eth0", 2, ("192.168.1.10/24", "fe80::1%eth0"))


def _open_multicast(target, interface=ETH0):
    fake = MagicMock()
    with patch("lanprobe.discovery.sockets.socket.socket", return_value=fake) as ctor:
        sock = SocketFactory().multicast(target, interface)
    return ctor, sock


# ---------------------------------------------------------------------------
# multicast()
# ---------------------------------------------------------------------------


class TestMulticast:

    def test_ipv6_listener_is_v6_only_before_bind(self):
        ctor, sock = _open_multicast(MDNS6_TARGET)

        ctor.assert_called_once_with(socket.AF_INET6, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        v6only = call.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
        bind = call.bind(("::", 5353))
        assert v6only in sock.mock_calls
        assert sock.mock_calls.index(v6only) < sock.mock_calls.index(bind)

    def test_ipv6_joins_group_on_interface_index(self):
        _, sock = _open_multicast(MDNS6_TARGET)

        joins = [
            c for c in sock.setsockopt.call_args_list
            if c.args[:2] == (socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP)
        ]
        assert len(joins) == 1
        mreq = joins[0].args[2]
        assert mreq[:16] == socket.inet_pton(socket.AF_INET6, "ff02::fb")
        assert struct.unpack("I", mreq[16:]) == (2,)

    def test_ipv4_listener_not_v6_only(self):
        _, sock = _open_multicast(MDNS4_TARGET)

        assert sock.bind.call_args == call(("", 5353))
        assert not [c for c in sock.setsockopt.call_args_list if c.args[0] == socket.IPPROTO_IPV6]
        sock.setsockopt.assert_any_call(
            socket.IPPROTO_IP,
            socket.IP_ADD_MEMBERSHIP,
            socket.inet_aton("224.0.0.251") + socket.inet_aton("192.168.1.10"),
        )

    def test_ipv4_without_address_fails_and_closes(self):
        fake = MagicMock()
        ipv6_only = NetworkInterface("eth1", 3, ("fe80::2",))
        with patch("lanprobe.discovery.sockets.socket.socket", return_value=fake):
            with pytest.raises(OSError, match="no IPv4 address"):
                SocketFactory().multicast(MDNS4_TARGET, ipv6_only)
        fake.close.assert_called_once()
