"""lanprobe - multicast device discovery for local network segments."""

__version__ = "0.1.0"
