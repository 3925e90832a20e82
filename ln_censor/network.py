"""
Network module for representing the payment-channel graph and loading it
from the supported topology formats.

Nodes and channels live in dense lists and reference each other by integer
index, so a loaded graph can be shared read-only across worker threads.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from enum import Enum
import json
import logging

from .errors import MalformedTopology


logger = logging.getLogger(__name__)


class GraphSource(Enum):
    """Supported topology formats."""
    LND = "lnd"
    LNR = "lnr"


@dataclass(frozen=True)
class Address:
    """A network address advertised by a node."""
    network: str
    addr: str

    @property
    def host(self) -> str:
        """Address without port or IPv6 brackets."""
        addr = self.addr.strip()
        if addr.startswith("["):
            return addr[1:].split("]", 1)[0]
        if addr.count(":") == 1:
            return addr.rsplit(":", 1)[0]
        return addr

    @property
    def is_onion(self) -> bool:
        return self.host.endswith(".onion") or self.network.startswith("tor")


@dataclass(frozen=True)
class FeePolicy:
    """Forwarding policy of one side of a channel."""
    base_fee_msat: int = 0
    fee_rate_ppm: int = 0
    min_htlc_msat: int = 0
    disabled: bool = False

    def fee_msat(self, amount_msat: int) -> int:
        """Fee charged for forwarding amount_msat over this channel."""
        return self.base_fee_msat + amount_msat * self.fee_rate_ppm // 1_000_000

    def can_forward(self, amount_msat: int) -> bool:
        return not self.disabled and amount_msat >= self.min_htlc_msat


@dataclass
class Node:
    """Represents a payment-channel node."""
    id: str
    alias: str = ""
    addresses: List[Address] = field(default_factory=list)

    # Filled in by the AS mapping step
    asn: Optional[int] = None

    @property
    def has_clearnet_address(self) -> bool:
        return any(not a.is_onion for a in self.addresses)


@dataclass(frozen=True)
class Channel:
    """A channel between two nodes, referenced by node index.

    node1_policy governs payments forwarded from node1 to node2,
    node2_policy the opposite direction.
    """
    channel_id: str
    node1: int
    node2: int
    capacity_sat: int
    node1_policy: Optional[FeePolicy] = None
    node2_policy: Optional[FeePolicy] = None

    def other(self, index: int) -> int:
        """Return the endpoint opposite to index."""
        return self.node2 if index == self.node1 else self.node1

    def policy_from(self, index: int) -> Optional[FeePolicy]:
        """Policy applied when forwarding out of node index."""
        return self.node1_policy if index == self.node1 else self.node2_policy


class Graph:
    """Channel graph stored as an arena of nodes and channels."""

    def __init__(self):
        self.nodes: List[Node] = []
        self.channels: List[Channel] = []
        self._index: Dict[str, int] = {}
        self._channel_ids: Dict[str, int] = {}
        self._adjacency: List[List[int]] = []

    def add_node(self, node: Node) -> int:
        """Add a node and return its index."""
        if node.id in self._index:
            raise MalformedTopology(f"node {node.id}", "duplicate node id")
        index = len(self.nodes)
        self.nodes.append(node)
        self._index[node.id] = index
        self._adjacency.append([])
        return index

    def add_channel(self, channel: Channel) -> int:
        """Add a channel between two existing nodes and return its index."""
        record = f"channel {channel.channel_id}"
        if channel.channel_id in self._channel_ids:
            raise MalformedTopology(record, "duplicate channel id")
        for endpoint in (channel.node1, channel.node2):
            if not 0 <= endpoint < len(self.nodes):
                raise MalformedTopology(record, f"unknown endpoint index {endpoint}")
        if channel.node1 == channel.node2:
            raise MalformedTopology(record, "self-loop")
        index = len(self.channels)
        self.channels.append(channel)
        self._channel_ids[channel.channel_id] = index
        self._adjacency[channel.node1].append(index)
        self._adjacency[channel.node2].append(index)
        return index

    def index_of(self, node_id: str) -> int:
        try:
            return self._index[node_id]
        except KeyError:
            raise KeyError(f"Unknown node: {node_id}") from None

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def node(self, node_id: str) -> Node:
        return self.nodes[self.index_of(node_id)]

    def channels_of(self, index: int) -> List[Channel]:
        """Channels touching the node at index."""
        return [self.channels[c] for c in self._adjacency[index]]

    def degree(self, index: int) -> int:
        return len(self._adjacency[index])

    def neighbors(self, index: int) -> Iterator[int]:
        for c in self._adjacency[index]:
            yield self.channels[c].other(index)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def nodes_without_address(self) -> int:
        return sum(1 for node in self.nodes if not node.addresses)

    @classmethod
    def from_json(cls, data: Dict[str, Any], source: GraphSource) -> 'Graph':
        """Build a graph from a decoded topology document."""
        if not isinstance(data, dict):
            raise MalformedTopology("document", "top-level JSON value must be an object")
        if source == GraphSource.LND:
            return _parse_lnd(data)
        elif source == GraphSource.LNR:
            return _parse_lnr(data)
        else:
            raise ValueError(f"Unknown graph source: {source}")

    @classmethod
    def from_json_file(cls, filepath: str, source: GraphSource) -> 'Graph':
        """Load graph from a JSON topology file."""
        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise MalformedTopology(str(filepath), f"cannot read file ({e.strerror})") from e
        except json.JSONDecodeError as e:
            raise MalformedTopology(str(filepath), f"invalid JSON ({e.msg} at line {e.lineno})") from e

        graph = cls.from_json(data, source)
        logger.info(f"Loaded {source.value} graph from {filepath}: {graph}")
        return graph

    def __len__(self) -> int:
        """Return total number of nodes."""
        return len(self.nodes)

    def __str__(self) -> str:
        return (f"Graph(nodes={self.node_count}, "
                f"channels={self.channel_count}, "
                f"without_address={self.nodes_without_address})")


def load_graph(filepath: str, source: GraphSource = GraphSource.LND) -> Graph:
    """Load and normalize a topology file."""
    return Graph.from_json_file(filepath, source)


# Field helpers

def _require(record: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(record, dict):
        raise MalformedTopology(where, "expected an object")
    if key not in record or record[key] is None:
        raise MalformedTopology(where, f"missing field '{key}'")
    return record[key]


def _to_int(value: Any, where: str, name: str) -> int:
    # lnd encodes 64-bit numbers as strings
    if isinstance(value, bool):
        raise MalformedTopology(where, f"field '{name}' is not a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedTopology(where, f"field '{name}' is not a number: {value!r}") from None


def _to_list(value: Any, where: str, name: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedTopology(where, f"field '{name}' must be a list")
    return value


def _parse_address(entry: Any, where: str) -> Address:
    if isinstance(entry, str):
        return Address(network="tcp", addr=entry)
    if isinstance(entry, dict):
        if "addr" in entry:
            return Address(network=str(entry.get("network", "tcp")), addr=str(entry["addr"]))
        if "address" in entry:
            host = str(entry["address"])
            port = entry.get("port")
            if port is not None:
                host = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
            return Address(network=str(entry.get("type", "tcp")), addr=host)
    raise MalformedTopology(where, f"unrecognized address entry {entry!r}")


def _parse_addresses(entries: Iterable[Any], where: str) -> List[Address]:
    return [_parse_address(entry, where) for entry in entries]


# lnd: `lncli describegraph`

def _lnd_policy(raw: Any, where: str) -> Optional[FeePolicy]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedTopology(where, "routing policy must be an object")
    return FeePolicy(
        base_fee_msat=_to_int(raw.get("fee_base_msat", 0), where, "fee_base_msat"),
        fee_rate_ppm=_to_int(raw.get("fee_rate_milli_msat", 0), where, "fee_rate_milli_msat"),
        min_htlc_msat=_to_int(raw.get("min_htlc", 0), where, "min_htlc"),
        disabled=bool(raw.get("disabled", False)),
    )


def _parse_lnd(data: Dict[str, Any]) -> Graph:
    graph = Graph()

    for i, raw in enumerate(_to_list(_require(data, "nodes", "document"), "document", "nodes")):
        where = f"nodes[{i}]"
        node_id = str(_require(raw, "pub_key", where))
        addresses = _to_list(raw.get("addresses"), where, "addresses")
        graph.add_node(Node(
            id=node_id,
            alias=str(raw.get("alias") or ""),
            addresses=_parse_addresses(addresses, where),
        ))

    for i, raw in enumerate(_to_list(_require(data, "edges", "document"), "document", "edges")):
        where = f"edges[{i}]"
        channel_id = str(_require(raw, "channel_id", where))
        endpoints = []
        for key in ("node1_pub", "node2_pub"):
            pub = str(_require(raw, key, where))
            if not graph.has_node(pub):
                raise MalformedTopology(f"channel {channel_id}", f"{key} {pub} is not a known node")
            endpoints.append(graph.index_of(pub))
        graph.add_channel(Channel(
            channel_id=channel_id,
            node1=endpoints[0],
            node2=endpoints[1],
            capacity_sat=_to_int(_require(raw, "capacity", where), where, "capacity"),
            node1_policy=_lnd_policy(raw.get("node1_policy"), where),
            node2_policy=_lnd_policy(raw.get("node2_policy"), where),
        ))

    return graph


# lnr: lnresearch dumps in networkx adjacency form

def _lnr_policy(raw: Dict[str, Any], where: str) -> FeePolicy:
    return FeePolicy(
        base_fee_msat=_to_int(raw.get("fee_base_msat", 0), where, "fee_base_msat"),
        fee_rate_ppm=_to_int(raw.get("fee_proportional_millionths", 0), where,
                             "fee_proportional_millionths"),
        min_htlc_msat=_to_int(raw.get("htlc_minimum_msat", 0), where, "htlc_minimum_msat"),
        disabled=not raw.get("active", True),
    )


def _parse_lnr(data: Dict[str, Any]) -> Graph:
    graph = Graph()

    raw_nodes = _to_list(_require(data, "nodes", "document"), "document", "nodes")
    for i, raw in enumerate(raw_nodes):
        where = f"nodes[{i}]"
        graph.add_node(Node(
            id=str(_require(raw, "id", where)),
            alias=str(raw.get("alias") or ""),
            addresses=_parse_addresses(_to_list(raw.get("addresses"), where, "addresses"), where),
        ))

    adjacency = _to_list(_require(data, "adjacency", "document"), "document", "adjacency")
    if len(adjacency) > len(raw_nodes):
        raise MalformedTopology("adjacency", "more adjacency lists than nodes")

    # Both directions of a channel appear under the same scid
    halves: Dict[str, List[Tuple[int, int, int, FeePolicy, str]]] = {}
    for src, neighbours in enumerate(adjacency):
        for j, raw in enumerate(_to_list(neighbours, f"adjacency[{src}]", "adjacency")):
            where = f"adjacency[{src}][{j}]"
            scid = str(_require(raw, "scid", where))
            dst_id = str(_require(raw, "id", where))
            if not graph.has_node(dst_id):
                raise MalformedTopology(f"channel {scid}", f"endpoint {dst_id} is not a known node")
            halves.setdefault(scid, []).append((
                src,
                graph.index_of(dst_id),
                _to_int(_require(raw, "satoshis", where), where, "satoshis"),
                _lnr_policy(raw, where),
                where,
            ))

    for scid, entries in halves.items():
        src, dst, capacity, policy, _ = entries[0]
        reverse_policy = None
        if len(entries) > 2:
            raise MalformedTopology(f"channel {scid}", "duplicate channel id")
        if len(entries) == 2:
            other_src, other_dst, _, other_policy, where = entries[1]
            if (other_src, other_dst) != (dst, src):
                raise MalformedTopology(f"channel {scid}", f"duplicate channel id at {where}")
            reverse_policy = other_policy
        graph.add_channel(Channel(
            channel_id=scid,
            node1=src,
            node2=dst,
            capacity_sat=capacity,
            node1_policy=policy,
            node2_policy=reverse_policy,
        ))

    return graph
