"""Shared fixtures: loopback sockets and a scripted UDP responder."""

import asyncio
import socket
from typing import Callable, Optional

import pytest

from lanprobe.discovery.interfaces import IPAddress, NetworkInterface
from lanprobe.discovery.sockets import SocketFactory
from lanprobe.discovery.targets import DiscoveryTarget


class LoopbackSocketFactory(SocketFactory):
    """
    Binds every unicast session to 127.0.0.1 instead of the interface address.

    Addresses listed in ``fail`` raise OSError, like a failed bind.
    """

    def __init__(self, fail: tuple[str, ...] = ()):
        self.fail = set(fail)
        self.opened: list[socket.socket] = []

    def unicast(self, ip: IPAddress, interface: NetworkInterface) -> socket.socket:
        if str(ip) in self.fail:
            raise OSError(99, f"Cannot assign requested address: {ip}")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("127.0.0.1", 0))
        sock.setblocking(False)
        self.opened.append(sock)
        return sock

    def multicast(self, target: DiscoveryTarget, interface: NetworkInterface) -> socket.socket:
        raise OSError(19, "No such device")


class UDPResponder:
    """Answers every datagram it receives with the packets ``reply`` returns."""

    def __init__(self, reply: Callable[[bytes], list[bytes]], delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.received: list[bytes] = []
        self.sent = 0
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.setblocking(False)
        self._task: Optional[asyncio.Task] = None

    @property
    def target(self) -> DiscoveryTarget:
        return DiscoveryTarget("127.0.0.1", self.sock.getsockname()[1], socket.AF_INET)

    def start(self) -> None:
        self._task = asyncio.create_task(self._serve())

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            data, addr = await loop.sock_recvfrom(self.sock, 9000)
            self.received.append(data)
            for i, packet in enumerate(self.reply(data)):
                if i and self.delay:
                    await asyncio.sleep(self.delay)
                await loop.sock_sendto(self.sock, packet, addr)
                self.sent += 1

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self.sock.close()


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def loopback_factory():
    factory = LoopbackSocketFactory()
    yield factory
    for sock in factory.opened:
        sock.close()


@pytest.fixture
def make_responder():
    responders: list[UDPResponder] = []

    def _make(reply: Callable[[bytes], list[bytes]], delay: float = 0.0) -> UDPResponder:
        responder = UDPResponder(reply, delay)
        responders.append(responder)
        return responder

    yield _make
    for responder in responders:
        responder.sock.close()


@pytest.fixture
def waiter():
    return wait_until
