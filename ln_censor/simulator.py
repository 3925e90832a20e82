"""
Simulation engine measuring how adversarial ASes censor payments.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
import logging
import time

import numpy as np

from .adversary import AdversarySet, select_adversaries
from .asn import ASMapping
from .network import Graph
from .payment import Payment, PaymentOutcome
from .results import OutcomeTally, ResultAggregator
from .routing import Router, to_msat


# Payment volumes (sat) simulated when no amount is given
DEFAULT_AMOUNTS_SAT = [100, 1_000, 10_000, 100_000, 1_000_000, 10_000_000]


@dataclass
class SimulationConfig:
    """Configuration for simulation runs."""
    seed: int = 19
    amounts_sat: List[int] = field(default_factory=lambda: list(DEFAULT_AMOUNTS_SAT))
    num_payments: int = 1000

    # Adversary selection
    num_adv_as: int = 5
    as_strategy: int = 1

    # Execution
    workers: int = 4
    keep_outcomes: bool = False
    verbose: bool = False


RouteFn = Callable[[int, int, int], Optional[List[int]]]


class PaymentSimulator:
    """Routes seeded payment pairs and classifies them against an adversary set."""

    def __init__(self,
                 graph: Graph,
                 mapping: ASMapping,
                 adversaries: AdversarySet,
                 config: Optional[SimulationConfig] = None,
                 router: Optional[RouteFn] = None):
        self.graph = graph
        self.mapping = mapping
        self.adversaries = adversaries
        self.config = config or SimulationConfig()
        self.router = router if router is not None else Router(graph)

        # Setup logging
        self.logger = logging.getLogger(self.__class__.__name__)
        if self.config.verbose:
            self.logger.setLevel(logging.DEBUG)

        self.eligible = [i for i in range(graph.node_count) if graph.degree(i) > 0]

    @classmethod
    def from_config(cls,
                    mapping: ASMapping,
                    config: SimulationConfig,
                    router: Optional[RouteFn] = None) -> 'PaymentSimulator':
        """Simulator whose adversaries are selected from config.num_adv_as and config.as_strategy."""
        adversaries = select_adversaries(mapping, config.as_strategy, config.num_adv_as)
        return cls(mapping.graph, mapping, adversaries, config, router=router)

    def draw_pair(self, index: int) -> Tuple[int, int]:
        """Source/destination of payment index, derived from (seed, index) only."""
        if len(self.eligible) < 2:
            raise ValueError(f"Need at least 2 nodes with channels, found {len(self.eligible)}")
        rng = np.random.default_rng([self.config.seed, index])
        src, dst = rng.choice(len(self.eligible), size=2, replace=False)
        return self.eligible[int(src)], self.eligible[int(dst)]

    def draw_pairs(self, count: int) -> List[Tuple[int, int]]:
        return [self.draw_pair(i) for i in range(count)]

    def classify(self, payment: Payment) -> Tuple[PaymentOutcome, List[int]]:
        """Outcome of a routed payment and the adversarial ASes its path touches."""
        if payment.path is None:
            return PaymentOutcome.no_path(), []

        exposed = []
        for hop in payment.intermediates:
            asn = self.mapping.asn_of(hop)
            if asn in self.adversaries and asn not in exposed:
                exposed.append(asn)
        if exposed:
            return PaymentOutcome.censored(exposed[0]), exposed
        return PaymentOutcome.delivered(), exposed

    def simulate_payment(self, payment: Payment) -> Tuple[PaymentOutcome, List[int]]:
        """Single routing attempt, no retries."""
        payment.mark_routed(self.router(payment.source, payment.destination, payment.amount_msat))
        outcome, exposed = self.classify(payment)
        payment.finish(outcome)
        return outcome, exposed

    def _run_chunk(self,
                   pairs: Sequence[Tuple[int, int]],
                   indices: range,
                   amount_msat: int) -> OutcomeTally:
        tally = OutcomeTally()
        for i in indices:
            src, dst = pairs[i]
            payment = Payment(index=i, source=src, destination=dst,
                              amount_msat=amount_msat, seed=self.config.seed)
            outcome, exposed = self.simulate_payment(payment)
            tally.record(outcome, exposed, index=i if self.config.keep_outcomes else None)
        return tally

    def run_amount(self,
                   amount_sat: int,
                   pairs: Sequence[Tuple[int, int]]) -> OutcomeTally:
        """Simulate all pairs for one payment volume."""
        amount_msat = to_msat(amount_sat)
        workers = max(1, min(self.config.workers, len(pairs)))
        if workers == 1:
            return self._run_chunk(pairs, range(len(pairs)), amount_msat)

        # Contiguous index slices, merged back in index order
        bounds = np.linspace(0, len(pairs), workers + 1, dtype=int)
        chunks = [range(bounds[k], bounds[k + 1]) for k in range(workers)]
        tally = OutcomeTally()
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for partial in executor.map(lambda c: self._run_chunk(pairs, c, amount_msat), chunks):
                tally.merge(partial)
        return tally

    def run(self, pairs: Optional[Iterable[Tuple[int, int]]] = None) -> ResultAggregator:
        """Run the simulation for every configured amount."""
        start_time = time.time()

        if pairs is None:
            pairs = self.draw_pairs(self.config.num_payments)
        else:
            pairs = list(pairs)
            eligible = set(self.eligible)
            for src, dst in pairs:
                if src == dst:
                    raise ValueError(f"Payment pair with identical endpoints: {src}")
                for endpoint in (src, dst):
                    if endpoint not in eligible:
                        raise ValueError(f"Payment endpoint {endpoint} is not a node with channels")

        aggregator = ResultAggregator(
            self.mapping,
            self.adversaries,
            seed=self.config.seed,
            num_payments=len(pairs),
            eligible_nodes=len(self.eligible),
        )

        for amount_sat in self.config.amounts_sat:
            self.logger.info(f"Starting simulation for {amount_sat} sat")
            tally = self.run_amount(amount_sat, pairs)
            aggregator.add(amount_sat, tally)
            self.logger.info(f"Completed simulation for {amount_sat} sat: "
                             f"{tally.delivered} delivered, {tally.failed_no_path} without path, "
                             f"{tally.failed_censored} censored")

        self.logger.info(f"Simulation completed in {time.time() - start_time:.2f} seconds")
        return aggregator
