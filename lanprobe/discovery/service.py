"""
Discovery service: runs every scanner session and the Aggregator for one scan.

Owns the shared output queue, the protocol scanners and the Aggregator,
tracks every session task to completion and provides the stop signal that
ends a scan.
"""

import asyncio
import logging
from typing import Optional, Sequence

from ..config import ScanConfig, settings
from .interfaces import NetworkInterface, enumerate_interfaces
from .reporter import CLOSED, Aggregator, Reporter, Sink
from .scanners import BaseScanner, MDNSScanner, SSDPScanner, mdns, ssdp
from .sockets import SocketFactory

logger = logging.getLogger("lanprobe.discovery.service")


class DiscoveryService:
    """
    Runs one scan across all enabled protocols.

    Features:
    - SSDP and mDNS scanners sharing one output queue
    - Exact-text deduplication of report lines
    - Stop signal with task cancellation for prompt shutdown
    - Optional fixed scan duration
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        sink: Optional[Sink] = None,
        socket_factory: Optional[SocketFactory] = None,
    ):
        self.config = config or settings.scan
        self._output: asyncio.Queue = asyncio.Queue()
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._running = False

        self.aggregator = Aggregator(self._output, sink)
        self._scanners: list[BaseScanner] = []

        # Initialize scanners based on config
        if self.config.ssdp_enabled:
            self._scanners.append(
                SSDPScanner(
                    Reporter(self._output, ssdp.PROTOCOL),
                    config=self.config,
                    socket_factory=socket_factory,
                )
            )
            logger.info("SSDP scanner enabled")

        if self.config.mdns_enabled:
            self._scanners.append(
                MDNSScanner(
                    Reporter(self._output, mdns.PROTOCOL),
                    config=self.config,
                    socket_factory=socket_factory,
                )
            )
            logger.info("mDNS scanner enabled")

    @property
    def scanners(self) -> list[BaseScanner]:
        return list(self._scanners)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def session_count(self) -> int:
        return len(self._tasks)

    @property
    def active_sessions(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def run(self, interfaces: Sequence[NetworkInterface]) -> int:
        """
        Scan the given interfaces until stopped.

        Returns once every session has ended and the Aggregator has drained
        the queue.

        Returns:
            Number of unique report lines emitted
        """
        if self._running:
            raise RuntimeError("discovery service is already running")
        if not self._scanners:
            logger.warning("No scanners configured")
            return 0

        self._running = True
        aggregator_task = asyncio.create_task(self.aggregator.run(), name="aggregator")
        timer: Optional[asyncio.TimerHandle] = None

        try:
            for scanner in self._scanners:
                self._tasks.extend(scanner.start(interfaces, self._stop))
            logger.info(
                "Started %d sessions on %d interfaces",
                len(self._tasks),
                len(interfaces),
            )

            if self.config.duration is not None:
                timer = asyncio.get_running_loop().call_later(self.config.duration, self.stop)

            # Counted completion: the queue stays open until every producer is done
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for task, result in zip(self._tasks, results):
                if isinstance(result, Exception):
                    logger.error("Session %s failed: %s", task.get_name(), result)
        finally:
            if timer is not None:
                timer.cancel()
            await self._output.put(CLOSED)
            emitted = await aggregator_task
            self._running = False

        logger.info("Scan complete: %d unique reports", emitted)
        return emitted

    def stop(self) -> None:
        """Signal every session to finish and cancel blocked receives."""
        if self._stop.is_set():
            return
        logger.info("Stopping discovery (%d sessions active)", self.active_sessions)
        self._stop.set()
        for task in self._tasks:
            task.cancel()


async def run_discovery_scan(
    interfaces: Optional[Sequence[NetworkInterface]] = None,
    config: Optional[ScanConfig] = None,
    sink: Optional[Sink] = None,
) -> int:
    """Run a discovery scan on the given (or all) interfaces until stopped."""
    config = config or settings.scan
    if interfaces is None:
        interfaces = enumerate_interfaces(config.interfaces)
    service = DiscoveryService(config, sink=sink)
    return await service.run(interfaces)
