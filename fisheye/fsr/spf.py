"""
FSR Route Computation
Unit-weight Dijkstra over the topology database with next-hop compression
"""

import heapq
import ipaddress
import logging
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

import networkx as nx

from fsr.lsdb import TopologyDatabase

logger = logging.getLogger(__name__)


class RouteEntry:
    """
    Routing table entry
    """

    def __init__(self, destination: str, next_hop: str, metric: int):
        """
        Initialize route entry

        Args:
            destination: Destination node address
            next_hop: First hop on the shortest path
            metric: Hop count to the destination
        """
        self.destination = destination
        self.next_hop = next_hop
        self.metric = metric

    def __eq__(self, other) -> bool:
        if not isinstance(other, RouteEntry):
            return NotImplemented
        return (self.destination, self.next_hop, self.metric) == \
               (other.destination, other.next_hop, other.metric)

    def __repr__(self) -> str:
        return (f"Route(dest={self.destination}, "
                f"next_hop={self.next_hop}, "
                f"metric={self.metric})")


def _address_key(address: str) -> Tuple[int, str]:
    # Numeric address order, text as a fallback for non-IPv4 keys
    try:
        return (int(ipaddress.IPv4Address(address)), address)
    except ValueError:
        return (-1, address)


class RouteComputer:
    """
    Compute next-hop routes from the topology database
    """

    def __init__(self, self_address: str):
        """
        Initialize route computer

        Args:
            self_address: This node's address
        """
        self.self_address = self_address
        self.routing_table: Dict[str, RouteEntry] = {}
        self.graph: Optional[nx.Graph] = None

    def recompute(self, topology: TopologyDatabase,
                  neighbors: Iterable[str]) -> Dict[str, RouteEntry]:
        """
        Run shortest path and build a fresh routing table

        Args:
            topology: Topology database
            neighbors: Live neighbor set (seeded at distance 1)

        Returns:
            Dictionary of destination -> RouteEntry for every reachable node
        """
        neighbors = frozenset(neighbors)
        self.graph = self._build_graph(topology, neighbors)

        distance: Dict[str, int] = {self.self_address: 0}
        next_hop: Dict[str, str] = {}

        # Freshly heard neighbors may not have sent an LSP yet
        for neighbor in neighbors:
            if neighbor != self.self_address:
                distance[neighbor] = 1
                next_hop[neighbor] = neighbor

        heap = [(dist, _address_key(node), node) for node, dist in distance.items()]
        heapq.heapify(heap)
        visited = set()

        while heap:
            dist, _, current = heapq.heappop(heap)
            if current in visited or dist > distance[current]:
                continue
            visited.add(current)

            for adjacent in self.graph.neighbors(current):
                if adjacent in visited:
                    continue

                candidate = dist + 1
                if candidate < distance.get(adjacent, float("inf")):
                    distance[adjacent] = candidate
                    if current == self.self_address:
                        next_hop[adjacent] = adjacent
                    else:
                        next_hop[adjacent] = next_hop[current]
                    heapq.heappush(heap, (candidate, _address_key(adjacent), adjacent))

        self.routing_table = {
            destination: RouteEntry(destination, next_hop[destination], metric)
            for destination, metric in distance.items()
            if destination != self.self_address
        }

        logger.info(f"Route computation complete: {len(self.routing_table)} routes "
                    f"over {self.graph.number_of_nodes()} nodes")
        return dict(self.routing_table)

    def _build_graph(self, topology: TopologyDatabase,
                     neighbors: FrozenSet[str]) -> nx.Graph:
        """
        Build a disposable undirected graph snapshot

        Nodes are the database originators plus the live neighbors. Edges
        at self come only from the live neighbor set; between two remote
        nodes an edge exists when either lists the other.

        Returns:
            NetworkX graph
        """
        graph = nx.Graph()
        graph.add_node(self.self_address)
        graph.add_nodes_from(topology.get_all_entries())
        graph.add_nodes_from(neighbors)

        for neighbor in neighbors:
            if neighbor != self.self_address:
                graph.add_edge(self.self_address, neighbor)

        for originator, entry in topology.get_all_entries().items():
            if originator == self.self_address:
                continue
            for neighbor in entry.neighbors:
                if neighbor in (originator, self.self_address) or neighbor not in graph:
                    continue
                graph.add_edge(originator, neighbor)

        logger.debug(f"Built graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges")
        return graph

    def get_route(self, destination: str) -> Optional[RouteEntry]:
        return self.routing_table.get(destination)

    def get_all_routes(self) -> Dict[str, RouteEntry]:
        return self.routing_table.copy()

    def print_routing_table(self):
        """
        Print routing table in human-readable format
        """
        print(f"\n{'='*70}")
        print(f"Routing Table for {self.self_address}")
        print(f"{'='*70}")
        print(f"{'Destination':<30} {'Metric':<10} {'Next Hop':<30}")
        print(f"{'-'*70}")

        if not self.routing_table:
            print("(empty)")
        else:
            for dest, entry in sorted(self.routing_table.items(), key=lambda item: _address_key(item[0])):
                print(f"{dest:<30} {entry.metric:<10} {entry.next_hop:<30}")

        print(f"{'='*70}\n")

    def get_statistics(self) -> Dict[str, int]:
        """
        Get route computation statistics

        Returns:
            Dictionary with statistics
        """
        return {
            'routes': len(self.routing_table),
            'nodes': self.graph.number_of_nodes() if self.graph else 0,
            'edges': self.graph.number_of_edges() if self.graph else 0
        }

    def __repr__(self) -> str:
        return f"RouteComputer(self={self.self_address}, routes={len(self.routing_table)})"
