"""
lanprobe - command line entry point.

Enumerates the local interfaces, runs the SSDP and mDNS scanners on all of
them and prints each distinct discovery to stdout until interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

from .config import ScanConfig, settings
from .discovery import (
    DiscoveryService,
    InterfaceEnumerationError,
    NetworkInterface,
    enumerate_interfaces,
)

logger = logging.getLogger("lanprobe.main")

LOG_FORMAT = "[%(levelname)s]: %(message)s"


class _LowercaseLevelFormatter(logging.Formatter):
    """Renders level names in lower case: "[error]: SSDP: ..."."""

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = record.levelname.lower()
        return super().format(record)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), stream=sys.stderr)
    for handler in logging.getLogger().handlers:
        handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanprobe",
        description="Discover devices on the local network via SSDP and mDNS.",
    )
    parser.add_argument(
        "-i", "--interface",
        action="append",
        dest="interfaces",
        metavar="NAME",
        help="Only scan this interface (repeatable)",
    )
    parser.add_argument(
        "-t", "--timeout",
        type=float,
        metavar="SECONDS",
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument("--no-ssdp", action="store_true", help="Disable SSDP")
    parser.add_argument("--no-mdns", action="store_true", help="Disable mDNS")
    parser.add_argument("--no-ipv6", action="store_true", help="Skip IPv6 addresses")
    parser.add_argument(
        "--service",
        action="append",
        dest="services",
        metavar="NAME",
        help="mDNS service type to query, e.g. _ipp._tcp.local. (repeatable)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug)",
    )
    return parser


def scan_config_from_args(args: argparse.Namespace, base: ScanConfig) -> ScanConfig:
    """Overlay command line options on the configured scan settings."""
    update = {}
    if args.interfaces:
        update["interfaces"] = args.interfaces
    if args.timeout is not None:
        update["duration"] = args.timeout
    if args.no_ssdp:
        update["ssdp_enabled"] = False
    if args.no_mdns:
        update["mdns_enabled"] = False
    if args.no_ipv6:
        update["ipv6_enabled"] = False
    if args.services:
        update["mdns_services"] = args.services
    # Re-validate so bad CLI values fail like bad environment values
    return ScanConfig.model_validate({**base.model_dump(), **update})


async def _run(service: DiscoveryService, interfaces: Sequence[NetworkInterface]) -> int:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops; KeyboardInterrupt still ends asyncio.run()
            pass
    return await service.run(interfaces)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = settings.log_level
    if args.verbose == 1:
        level = "INFO"
    elif args.verbose >= 2:
        level = "DEBUG"
    configure_logging(level)

    try:
        config = scan_config_from_args(args, settings.scan)
    except ValueError as e:
        logger.error("invalid options: %s", e)
        return 2

    try:
        interfaces = enumerate_interfaces(config.interfaces)
    except InterfaceEnumerationError as e:
        logger.critical("%s", e)
        return 1

    if not interfaces:
        logger.warning("No usable network interfaces found")
        return 0

    service = DiscoveryService(config)
    try:
        asyncio.run(_run(service, interfaces))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
