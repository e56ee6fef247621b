"""
Centralized configuration management using Pydantic Settings.

Configuration is loaded from environment variables with sensible defaults.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MDNS_SERVICES = [
    "_googlecast._tcp.local.",
    "_axis-video._tcp.local.",
    "_http._tcp.local.",
]


class ScanConfig(BaseSettings):
    """Network discovery scan configuration."""

    model_config = SettingsConfigDict(env_prefix="LANPROBE_SCAN_")

    ssdp_enabled: bool = Field(default=True, description="Run SSDP query sessions")
    mdns_enabled: bool = Field(default=True, description="Run mDNS query sessions")
    mdns_passive_listen: bool = Field(
        default=True,
        description="Join the mDNS multicast groups and listen for announcements",
    )
    ipv6_enabled: bool = Field(default=True, description="Scan IPv6 interface addresses")

    mdns_services: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MDNS_SERVICES),
        description="Service names probed with one PTR query each",
    )
    ssdp_search_target: str = Field(default="ssdp:all", description="M-SEARCH ST header")
    ssdp_mx: int = Field(default=1, ge=1, le=5, description="M-SEARCH MX header (seconds)")

    recv_buffer_size: int = Field(
        default=9000,
        description="Receive buffer per datagram (9000 is the mDNS message limit)",
    )
    duration: Optional[float] = Field(
        default=None,
        description="Stop the scan after this many seconds (None = until signalled)",
    )
    interfaces: list[str] = Field(
        default_factory=list,
        description="Interface names to scan (empty = all)",
    )

    @field_validator("mdns_services")
    @classmethod
    def _require_fqdn(cls, value: list[str]) -> list[str]:
        for name in value:
            if not name.endswith("."):
                raise ValueError(f"service name must be fully qualified: {name!r}")
        return value

    @field_validator("recv_buffer_size")
    @classmethod
    def _positive_buffer(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("recv_buffer_size must be positive")
        return value

    @field_validator("duration")
    @classmethod
    def _positive_duration(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("duration must be positive")
        return value


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="LANPROBE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING", description="Logging level")

    scan: ScanConfig = Field(default_factory=ScanConfig)


# Singleton settings instance
settings = Settings()
