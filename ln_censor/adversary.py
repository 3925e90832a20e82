"""
Selection of adversarial Autonomous Systems.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Set, Tuple
import logging

from .asn import ASMapping, AutonomousSystem, TOR_ASN


logger = logging.getLogger(__name__)


class AsSelectionStrategy(IntEnum):
    """Metric used to rank ASes as potential adversaries."""
    MAX_NODES = 0
    MAX_CHANNELS = 1

    def metric(self, system: AutonomousSystem) -> int:
        if self == AsSelectionStrategy.MAX_NODES:
            return system.node_count
        return system.total_channels


@dataclass(frozen=True)
class AdversarySet:
    """Ordered top-N selection of adversarial AS numbers."""
    asns: Tuple[int, ...]
    strategy: AsSelectionStrategy
    requested: int

    @property
    def shortfall(self) -> int:
        """How many of the requested ASes could not be selected."""
        return self.requested - len(self.asns)

    def contains(self, asn: int) -> bool:
        return asn in self.asns

    def compromised_nodes(self, mapping: ASMapping) -> Set[int]:
        """Indices of all nodes hosted by a selected AS."""
        compromised = set()
        for asn in self.asns:
            compromised.update(mapping.systems[asn].members)
        return compromised

    def __contains__(self, asn: int) -> bool:
        return self.contains(asn)

    def __iter__(self):
        return iter(self.asns)

    def __len__(self) -> int:
        return len(self.asns)


def rank_systems(mapping: ASMapping, strategy: AsSelectionStrategy) -> List[AutonomousSystem]:
    """Eligible ASes ordered by descending metric, ties by ascending AS number."""
    eligible = [s for s in mapping.systems.values() if s.asn != TOR_ASN]
    return sorted(eligible, key=lambda s: (-strategy.metric(s), s.asn))


def select_adversaries(mapping: ASMapping,
                       strategy: AsSelectionStrategy,
                       num_adv_as: int) -> AdversarySet:
    """Select the top num_adv_as ASes under strategy."""
    if num_adv_as < 0:
        raise ValueError(f"Number of adversarial ASes must be non-negative, got {num_adv_as}")
    strategy = AsSelectionStrategy(strategy)

    ranked = rank_systems(mapping, strategy)
    adversaries = AdversarySet(
        asns=tuple(s.asn for s in ranked[:num_adv_as]),
        strategy=strategy,
        requested=num_adv_as,
    )

    logger.info(f"Simulating {len(adversaries)} {strategy.name} ASes as adversaries: "
                f"{list(adversaries.asns)}")
    if adversaries.shortfall > 0:
        logger.warning(f"Only {len(ranked)} eligible ASes, {adversaries.shortfall} "
                       f"fewer adversaries than requested")
    return adversaries
