"""
Report formatting and deduplicating output.

Reporters render discovery results into fixed-width lines and push them
onto one shared queue; a single Aggregator drains the queue and prints each
distinct line once.
"""

import asyncio
import functools
import logging
from typing import Callable, Optional

logger = logging.getLogger("lanprobe.discovery.reporter")

# Put on the output queue once every producer has finished.
CLOSED = object()

Sink = Callable[[str], None]


def format_report(ip: str, protocol: str, message: str) -> str:
    """Render one report line: IP in 24 columns, protocol in 8, then the message."""
    return f"{ip:<24} {protocol:<8} {message}"


class Reporter:
    """Formats results for one protocol onto the shared output queue."""

    def __init__(self, output: asyncio.Queue, protocol: str):
        self._output = output
        self.protocol = protocol

    async def print(self, ip: str, message: str) -> None:
        await self._output.put(format_report(ip, self.protocol, message))


class Aggregator:
    """
    Single consumer of the output queue.

    Keeps every line it has emitted; a line whose rendered text was already
    seen is dropped, even when it came from a different session.
    """

    def __init__(self, output: asyncio.Queue, sink: Optional[Sink] = None):
        self._output = output
        self._sink = sink or functools.partial(print, flush=True)
        self._seen: set[str] = set()

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def offer(self, line: str) -> bool:
        """Emit the line unless it was seen before. Returns True if emitted."""
        if line in self._seen:
            return False
        self._seen.add(line)
        self._sink(line)
        return True

    async def run(self) -> int:
        """Drain the queue until the CLOSED sentinel. Returns lines emitted."""
        emitted = 0
        while True:
            line = await self._output.get()
            try:
                if line is CLOSED:
                    break
                if self.offer(line):
                    emitted += 1
                else:
                    logger.debug("Duplicate report dropped: %s", line)
            finally:
                self._output.task_done()

        logger.info("Aggregator stopped after %d unique reports", emitted)
        return emitted
