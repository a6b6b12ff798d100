"""
Kernel Routing Table Management

Installs routes computed by the routing protocol into the Linux kernel
routing table for actual packet forwarding. Routes are grouped by an owner
tag so a protocol can replace exactly the set it installed.
"""

import subprocess
import logging
from abc import ABC, abstractmethod
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

# destination -> (next_hop, metric)
RouteSet = Dict[str, Tuple[str, int]]


class RoutingSink(ABC):
    """
    Destination for computed routes
    """

    @abstractmethod
    def install(self, destination: str, next_hop: str, metric: int, owner_tag: str) -> bool:
        """
        Install a host route

        Args:
            destination: Destination address
            next_hop: Next-hop address
            metric: Route metric
            owner_tag: Protocol that owns the route

        Returns:
            True if successful
        """

    @abstractmethod
    def clear_all(self, owner_tag: str):
        """Remove every route installed under owner_tag"""

    @abstractmethod
    def get_routes(self, owner_tag: str) -> RouteSet:
        """Routes currently installed under owner_tag"""


class MemoryRouteTable(RoutingSink):
    """
    In-process routing table, used for dry runs
    """

    def __init__(self):
        self.routes: Dict[str, RouteSet] = {}

    def install(self, destination: str, next_hop: str, metric: int, owner_tag: str) -> bool:
        self.routes.setdefault(owner_tag, {})[destination] = (next_hop, metric)
        logger.debug(f"Installed route {destination} via {next_hop} metric {metric} ({owner_tag})")
        return True

    def clear_all(self, owner_tag: str):
        removed = self.routes.pop(owner_tag, {})
        if removed:
            logger.debug(f"Cleared {len(removed)} routes ({owner_tag})")

    def get_routes(self, owner_tag: str) -> RouteSet:
        return dict(self.routes.get(owner_tag, {}))


class KernelRouteManager(RoutingSink):
    """
    Manages installation of routes into Linux kernel routing table
    """

    def __init__(self):
        self.installed_routes: Dict[str, RouteSet] = {}  # owner_tag -> routes

    def install(self, destination: str, next_hop: str, metric: int, owner_tag: str) -> bool:
        prefix = f"{destination}/32"
        cmd = ["ip", "route", "replace", prefix, "via", next_hop, "metric", str(metric)]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
        except subprocess.TimeoutExpired:
            logger.error(f"Timeout installing route {prefix}")
            return False
        except OSError as e:
            logger.error(f"Error installing route {prefix}: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"Failed to install route {prefix}: {result.stderr.strip()}")
            return False

        self.installed_routes.setdefault(owner_tag, {})[destination] = (next_hop, metric)
        logger.info(f"Installed kernel route: {prefix} via {next_hop} metric {metric} ({owner_tag})")
        return True

    def remove_route(self, destination: str, metric: int) -> bool:
        """
        Remove route from kernel routing table

        Args:
            destination: Destination address
            metric: Metric the route was installed with

        Returns:
            True if the route is gone
        """
        prefix = f"{destination}/32"
        cmd = ["ip", "route", "del", prefix, "metric", str(metric)]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"Error removing route {prefix}: {e}")
            return False

        if result.returncode == 0:
            logger.info(f"Removed kernel route: {prefix}")
            return True

        if "No such process" in result.stderr or "not found" in result.stderr:
            # Already gone
            return True

        logger.warning(f"Failed to remove route {prefix}: {result.stderr.strip()}")
        return False

    def clear_all(self, owner_tag: str):
        routes = self.installed_routes.pop(owner_tag, {})
        for destination, (_, metric) in routes.items():
            self.remove_route(destination, metric)

    def get_routes(self, owner_tag: str) -> RouteSet:
        return dict(self.installed_routes.get(owner_tag, {}))
