"""
Attribution of nodes to Autonomous Systems.

The address-to-AS dataset is loaded once and injected into ASNMapper, so
tests and alternative datasets can provide any object with a compatible
``lookup`` method.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import ipaddress
import logging
import os

import pyasn

from .errors import AddressLookupUnavailable
from .network import Graph, Node


logger = logging.getLogger(__name__)

# Reserved for nodes without a resolvable clearnet address (Tor-only or unknown)
TOR_ASN = 0

ASN_DB_ENV = "LN_CENSOR_ASN_DB"


class AddressLookup:
    """Read-only address to AS number lookup backed by a pyasn IPASN dataset."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or os.environ.get(ASN_DB_ENV)
        if not self.db_path:
            raise AddressLookupUnavailable(None, f"no dataset given and {ASN_DB_ENV} is not set")
        if not os.path.isfile(self.db_path):
            raise AddressLookupUnavailable(self.db_path, "file not found")
        try:
            self._db = pyasn.pyasn(self.db_path)
        except (OSError, ValueError, RuntimeError) as e:
            raise AddressLookupUnavailable(self.db_path, str(e)) from e

        prefixes = len(self._db.radix.prefixes())
        if prefixes == 0:
            raise AddressLookupUnavailable(self.db_path, "dataset contains no prefixes")
        logger.debug(f"Opened AS database {self.db_path} with {prefixes} prefixes")

    def lookup(self, host: str) -> Optional[int]:
        """Return the AS number announcing host, or None if unknown."""
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            logger.warning(f"Unable to parse {host!r} as an IP address")
            return None
        try:
            asn, _prefix = self._db.lookup(str(ip))
        except ValueError as e:
            logger.warning(f"ASN lookup for {ip} failed: {e}")
            return None
        return asn


@dataclass
class AutonomousSystem:
    """AS-level aggregate of the nodes mapped to one AS number."""
    asn: int
    members: List[int] = field(default_factory=list)
    intra_channels: int = 0
    inter_channels: int = 0

    @property
    def node_count(self) -> int:
        return len(self.members)

    @property
    def total_channels(self) -> int:
        """Channels with at least one endpoint in this AS."""
        return self.intra_channels + self.inter_channels

    @property
    def is_anonymized(self) -> bool:
        return self.asn == TOR_ASN


class ASMapping:
    """Result of mapping a graph's nodes onto AS numbers."""

    def __init__(self, graph: Graph, node_asn: List[int]):
        self.graph = graph
        self.node_asn = node_asn
        self.systems: Dict[int, AutonomousSystem] = {}

        for index, asn in enumerate(node_asn):
            if asn not in self.systems:
                self.systems[asn] = AutonomousSystem(asn)
            self.systems[asn].members.append(index)

        for channel in graph.channels:
            a = node_asn[channel.node1]
            b = node_asn[channel.node2]
            if a == b:
                # AS 0 is counted like any other AS here
                self.systems[a].intra_channels += 1
            else:
                self.systems[a].inter_channels += 1
                self.systems[b].inter_channels += 1

    def asn_of(self, index: int) -> int:
        return self.node_asn[index]

    def members(self, asn: int) -> List[Node]:
        system = self.systems.get(asn)
        if system is None:
            return []
        return [self.graph.nodes[i] for i in system.members]

    @property
    def unresolved_share(self) -> float:
        """Fraction of nodes attributed to the sentinel AS."""
        if not self.node_asn:
            return 0.0
        tor = self.systems.get(TOR_ASN)
        return (tor.node_count if tor else 0) / len(self.node_asn)

    def node_degrees(self) -> List[Tuple[int, str, int]]:
        """Per-node (asn, node id, channel count) rows in AS order."""
        rows = []
        for system in self.systems.values():
            for index in system.members:
                rows.append((system.asn, self.graph.nodes[index].id, self.graph.degree(index)))
        return rows

    def intra_ratios(self) -> List[Tuple[int, str, float]]:
        """Per-node share of channels staying inside the node's AS.

        Ratios are truncated to two decimals. Nodes without channels are
        skipped.
        """
        rows = []
        for system in self.systems.values():
            for index in system.members:
                total = self.graph.degree(index)
                if total == 0:
                    continue
                same = sum(1 for peer in self.graph.neighbors(index)
                           if self.node_asn[peer] == system.asn)
                rows.append((system.asn, self.graph.nodes[index].id, (same * 100 // total) / 100))
        return rows

    def __len__(self) -> int:
        return len(self.systems)


class ASNMapper:
    """Maps every node of a graph onto the AS hosting it."""

    def __init__(self, lookup):
        self.lookup = lookup

    def resolve(self, node: Node) -> int:
        """AS of the first resolvable clearnet address, else the sentinel AS."""
        for address in node.addresses:
            if address.is_onion:
                logger.debug(f"Skipping onion address of {node.id}")
                continue
            asn = self.lookup.lookup(address.host)
            if asn is not None:
                return asn
            logger.warning(f"No ASN entry found for {address.host} in database")
        return TOR_ASN

    def map(self, graph: Graph) -> ASMapping:
        """Resolve all nodes and build the AS aggregates."""
        node_asn = []
        for node in graph.nodes:
            node.asn = self.resolve(node)
            node_asn.append(node.asn)

        mapping = ASMapping(graph, node_asn)
        logger.info(f"Found a total of {len(mapping)} ASNs in input graph")
        logger.info(f"{mapping.unresolved_share * 100:.1f}% of nodes mapped to AS {TOR_ASN}")
        return mapping
