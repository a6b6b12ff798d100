"""
FSR Protocol Configuration
"""

from dataclasses import dataclass

from fsr.constants import (
    HELLO_INTERVAL, LSP_UPDATE_INTERVAL, JITTER_BOUND, FISHEYE_SCOPE,
    TOPOLOGY_LIFETIME, NEIGHBOR_EXPIRY_MULTIPLIER, FSR_PORT, MAX_HOP_COUNT,
    ROUTE_OWNER_TAG
)
from fsr.errors import ConfigurationError


@dataclass
class FSRConfig:
    """
    FSR protocol configuration

    Intervals are in seconds, topology_lifetime is in aging ticks.
    """
    hello_interval: float = HELLO_INTERVAL
    lsp_update_interval: float = LSP_UPDATE_INTERVAL
    jitter_bound: float = JITTER_BOUND
    fisheye_scope: int = FISHEYE_SCOPE
    topology_lifetime: int = TOPOLOGY_LIFETIME
    neighbor_expiry_multiplier: int = NEIGHBOR_EXPIRY_MULTIPLIER
    port: int = FSR_PORT
    route_owner_tag: str = ROUTE_OWNER_TAG

    @property
    def neighbor_hold_time(self) -> float:
        """Seconds a neighbor stays alive without being heard from"""
        return self.neighbor_expiry_multiplier * self.hello_interval

    def validate(self) -> "FSRConfig":
        """
        Check option ranges

        Returns:
            self, so construction and validation can be chained

        Raises:
            ConfigurationError: if any option is out of range
        """
        if self.hello_interval <= 0:
            raise ConfigurationError(f"hello_interval must be positive, got {self.hello_interval}")
        if self.lsp_update_interval <= 0:
            raise ConfigurationError(f"lsp_update_interval must be positive, got {self.lsp_update_interval}")
        if self.jitter_bound < 0:
            raise ConfigurationError(f"jitter_bound must not be negative, got {self.jitter_bound}")

        # Jitter must never push a periodic timer to zero or below
        shortest = min(self.hello_interval, self.lsp_update_interval)
        if self.jitter_bound >= shortest:
            raise ConfigurationError(
                f"jitter_bound ({self.jitter_bound}) must be smaller than every periodic interval ({shortest})"
            )

        if not 1 <= self.fisheye_scope <= MAX_HOP_COUNT:
            raise ConfigurationError(f"fisheye_scope must be within 1..{MAX_HOP_COUNT}, got {self.fisheye_scope}")
        if self.topology_lifetime < 1:
            raise ConfigurationError(f"topology_lifetime must be at least 1 tick, got {self.topology_lifetime}")
        if self.neighbor_expiry_multiplier < 1:
            raise ConfigurationError(
                f"neighbor_expiry_multiplier must be at least 1, got {self.neighbor_expiry_multiplier}"
            )
        if not 1 <= self.port <= 65535:
            raise ConfigurationError(f"port must be within 1..65535, got {self.port}")
        if not self.route_owner_tag:
            raise ConfigurationError("route_owner_tag must not be empty")

        return self
