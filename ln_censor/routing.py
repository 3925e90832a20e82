"""
Route finding over the channel graph.

Router stands in for the payment network's routing engine: a pure function
of (source, destination, amount) returning a node path or None. It builds a
networkx view of the graph once and only reads it afterwards.
"""

from typing import List, Optional
import logging

import networkx as nx

from .errors import RoutingUnavailable
from .network import Graph


logger = logging.getLogger(__name__)

# Maximum route length accepted by the payment network
MAX_ROUTE_HOPS = 20


def to_sat(amount_msat: int) -> int:
    return amount_msat // 1000


def to_msat(amount_sat: int) -> int:
    return amount_sat * 1000


class Router:
    """Minimum-fee single-path router."""

    def __init__(self, graph: Graph, max_hops: int = MAX_ROUTE_HOPS):
        self.graph = graph
        self.max_hops = max_hops
        self.digraph = nx.DiGraph()
        self.digraph.add_nodes_from(range(graph.node_count))

        for channel in graph.channels:
            for u, v in ((channel.node1, channel.node2), (channel.node2, channel.node1)):
                entry = (channel.capacity_sat, channel.policy_from(u))
                if self.digraph.has_edge(u, v):
                    self.digraph[u][v]["channels"].append(entry)
                else:
                    self.digraph.add_edge(u, v, channels=[entry])

        logger.debug(f"Router built over {self.digraph.number_of_edges()} directed hops")

    def _hop_cost(self, source: int, amount_msat: int):
        """Weight function hiding hops that cannot carry amount_msat."""
        def cost(u, v, data) -> Optional[int]:
            best = None
            for capacity_sat, policy in data["channels"]:
                if to_msat(capacity_sat) < amount_msat:
                    continue
                if u == source:
                    # No fee on the sender's own channel
                    return 0
                if policy is None or not policy.can_forward(amount_msat):
                    continue
                fee = policy.fee_msat(amount_msat)
                if best is None or fee < best:
                    best = fee
            return best
        return cost

    def find_path(self, source: int, destination: int, amount_msat: int) -> Optional[List[int]]:
        """Return the cheapest feasible path as node indices, or None."""
        if source == destination:
            raise ValueError("Source and destination must differ")
        cost = self._hop_cost(source, amount_msat)
        try:
            path = nx.dijkstra_path(self.digraph, source, destination, weight=cost)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None
        except nx.NetworkXException as e:
            raise RoutingUnavailable(f"Routing engine failed: {e}") from e

        if len(path) - 1 > self.max_hops:
            logger.debug(f"Cheapest path {source}->{destination} exceeds {self.max_hops} hops, "
                         f"searching within the hop limit")
            return self._bounded_path(source, destination, cost)
        return path

    def _bounded_path(self, source: int, destination: int, cost) -> Optional[List[int]]:
        """Cheapest path using at most max_hops hops, layered by hop count."""
        best = {source: (0, [source])}
        frontier = dict(best)
        for _ in range(self.max_hops):
            reached = {}
            for u, (total, path) in frontier.items():
                for v, data in self.digraph[u].items():
                    weight = cost(u, v, data)
                    if weight is None:
                        continue
                    candidate = total + weight
                    known = reached.get(v, best.get(v))
                    if known is None or candidate < known[0]:
                        reached[v] = (candidate, path + [v])
            if not reached:
                break
            best.update(reached)
            frontier = reached

        if destination not in best:
            return None
        return best[destination][1]

    def __call__(self, source: int, destination: int, amount_msat: int) -> Optional[List[int]]:
        return self.find_path(source, destination, amount_msat)
