"""
Device discovery module for lanprobe.

Provides per-interface multicast scanning and passive listening using
multiple protocols (SSDP, mDNS), with deduplicated reporting.
"""

from .exceptions import DecodeError, DiscoveryError, InterfaceEnumerationError
from .interfaces import NetworkInterface, enumerate_interfaces
from .reporter import Aggregator, Reporter
from .service import DiscoveryService, run_discovery_scan

__all__ = [
    "Aggregator",
    "DecodeError",
    "DiscoveryError",
    "DiscoveryService",
    "InterfaceEnumerationError",
    "NetworkInterface",
    "Reporter",
    "enumerate_interfaces",
    "run_discovery_scan",
]
