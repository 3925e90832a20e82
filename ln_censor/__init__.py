"""
ln-censor - A research toolkit for measuring AS-level censorship of
payment-channel networks.

This package provides tools for:
- Loading Lightning channel graphs from lnd and lnresearch dumps
- Attributing nodes to the Autonomous Systems hosting them
- Selecting the most powerful ASes as adversaries
- Simulating payments and measuring how many the adversaries can censor
"""

__version__ = "0.1.0"

from .errors import (
    LnCensorError, MalformedTopology, AddressLookupUnavailable,
    RoutingUnavailable, OutputWriteError
)
from .network import Address, Channel, FeePolicy, Graph, GraphSource, Node, load_graph
from .asn import TOR_ASN, AddressLookup, ASMapping, ASNMapper, AutonomousSystem
from .adversary import AdversarySet, AsSelectionStrategy, rank_systems, select_adversaries
from .routing import Router
from .payment import OutcomeKind, Payment, PaymentOutcome, PaymentState
from .results import OutcomeTally, ResultAggregator
from .simulator import PaymentSimulator, SimulationConfig

__all__ = [
    "LnCensorError",
    "MalformedTopology",
    "AddressLookupUnavailable",
    "RoutingUnavailable",
    "OutputWriteError",
    "Address",
    "Channel",
    "FeePolicy",
    "Graph",
    "GraphSource",
    "Node",
    "load_graph",
    "TOR_ASN",
    "AddressLookup",
    "ASMapping",
    "ASNMapper",
    "AutonomousSystem",
    "AdversarySet",
    "AsSelectionStrategy",
    "rank_systems",
    "select_adversaries",
    "Router",
    "OutcomeKind",
    "Payment",
    "PaymentOutcome",
    "PaymentState",
    "OutcomeTally",
    "ResultAggregator",
    "PaymentSimulator",
    "SimulationConfig",
]
