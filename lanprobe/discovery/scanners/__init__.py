"""
Per-protocol scanners. Each one plans the socket sessions for its protocol:
- SSDP: Simple Service Discovery Protocol (UPnP devices)
- mDNS: Multicast DNS / Bonjour (Google Cast, Axis cameras, HTTP services)
"""

from .base import BaseScanner
from .mdns import MDNSScanner
from .ssdp import SSDPScanner

__all__ = [
    "BaseScanner",
    "SSDPScanner",
    "MDNSScanner",
]
