"""
Aggregation of simulation outcomes and AS statistics into ordered records,
and their serialization to CSV and JSON.
"""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import json
import logging

import pandas as pd

from .adversary import AdversarySet
from .asn import ASMapping
from .errors import OutputWriteError
from .payment import OutcomeKind, PaymentOutcome


logger = logging.getLogger(__name__)


@dataclass
class OutcomeTally:
    """Outcome counts for one batch of payments."""
    delivered: int = 0
    failed_no_path: int = 0
    # First adversarial AS met along each censored path
    censored: Counter = field(default_factory=Counter)
    # Payments with a feasible path touching each adversarial AS
    exposed: Counter = field(default_factory=Counter)
    outcomes: List[Tuple[int, PaymentOutcome]] = field(default_factory=list)

    def record(self, outcome: PaymentOutcome,
               exposed_asns: Iterable[int] = (),
               index: Optional[int] = None) -> None:
        if outcome.kind == OutcomeKind.DELIVERED:
            self.delivered += 1
        elif outcome.kind == OutcomeKind.FAILED_NO_PATH:
            self.failed_no_path += 1
        else:
            self.censored[outcome.asn] += 1
        self.exposed.update(set(exposed_asns))
        if index is not None:
            self.outcomes.append((index, outcome))

    def merge(self, other: 'OutcomeTally') -> 'OutcomeTally':
        """Fold another tally into this one and return self."""
        self.delivered += other.delivered
        self.failed_no_path += other.failed_no_path
        self.censored.update(other.censored)
        self.exposed.update(other.exposed)
        self.outcomes.extend(other.outcomes)
        return self

    @property
    def failed_censored(self) -> int:
        return sum(self.censored.values())

    @property
    def total(self) -> int:
        return self.delivered + self.failed_no_path + self.failed_censored

    @property
    def baseline_delivered(self) -> int:
        """Payments that would have been delivered without any adversary."""
        return self.delivered + self.failed_censored

    @property
    def success_rate(self) -> float:
        return self.delivered / self.total if self.total else 0.0

    @property
    def censorship_rate(self) -> float:
        return self.failed_censored / self.total if self.total else 0.0


class ResultAggregator:
    """Collects per-amount tallies and AS statistics for one run."""

    OUTCOME_COLUMNS = ["amount_sat", "total", "delivered", "failed_no_path",
                       "failed_censored", "baseline_delivered", "success_rate"]
    CENSORSHIP_COLUMNS = ["amount_sat", "rank", "asn", "censored", "exposed"]
    DEGREE_COLUMNS = ["asn", "degree"]
    NODE_DEGREE_COLUMNS = ["asn", "node", "degree"]
    INTRA_INTER_COLUMNS = ["asn", "intra", "inter"]
    INTRA_RATIO_COLUMNS = ["asn", "node", "ratio"]

    def __init__(self,
                 mapping: ASMapping,
                 adversaries: Optional[AdversarySet] = None,
                 seed: Optional[int] = None,
                 num_payments: Optional[int] = None,
                 eligible_nodes: Optional[int] = None):
        self.mapping = mapping
        self.adversaries = adversaries
        self.seed = seed
        self.num_payments = num_payments
        self.eligible_nodes = eligible_nodes
        self.tallies: Dict[int, OutcomeTally] = {}

    def add(self, amount_sat: int, tally: OutcomeTally) -> None:
        if amount_sat in self.tallies:
            self.tallies[amount_sat].merge(tally)
        else:
            self.tallies[amount_sat] = tally

    def outcome_records(self) -> List[Dict[str, Any]]:
        records = []
        for amount_sat, tally in self.tallies.items():
            records.append({
                "amount_sat": amount_sat,
                "total": tally.total,
                "delivered": tally.delivered,
                "failed_no_path": tally.failed_no_path,
                "failed_censored": tally.failed_censored,
                "baseline_delivered": tally.baseline_delivered,
                "success_rate": round(tally.success_rate, 6),
            })
        return records

    def censorship_records(self) -> List[Dict[str, Any]]:
        """Per-adversary counts, in selection rank order."""
        if self.adversaries is None:
            return []
        records = []
        for amount_sat, tally in self.tallies.items():
            for rank, asn in enumerate(self.adversaries.asns, start=1):
                records.append({
                    "amount_sat": amount_sat,
                    "rank": rank,
                    "asn": asn,
                    "censored": tally.censored.get(asn, 0),
                    "exposed": tally.exposed.get(asn, 0),
                })
        return records

    def degree_records(self) -> List[Dict[str, Any]]:
        """One row per AS, including the sentinel AS."""
        return [{"asn": s.asn, "degree": s.total_channels}
                for s in self.mapping.systems.values()]

    def node_degree_records(self) -> List[Dict[str, Any]]:
        return [{"asn": asn, "node": node, "degree": degree}
                for asn, node, degree in self.mapping.node_degrees()]

    def intra_inter_records(self) -> List[Dict[str, Any]]:
        return [{"asn": s.asn, "intra": s.intra_channels, "inter": s.inter_channels}
                for s in self.mapping.systems.values()]

    def intra_ratio_records(self) -> List[Dict[str, Any]]:
        return [{"asn": asn, "node": node, "ratio": ratio}
                for asn, node, ratio in self.mapping.intra_ratios()]

    def metadata(self) -> Dict[str, Any]:
        graph = self.mapping.graph
        data = {
            "seed": self.seed,
            "num_payments": self.num_payments,
            "amounts_sat": list(self.tallies.keys()),
            "network_size": graph.node_count,
            "channel_count": graph.channel_count,
            "eligible_nodes": self.eligible_nodes,
            "num_asns": len(self.mapping),
            "unresolved_share": round(self.mapping.unresolved_share, 6),
        }
        if self.adversaries is not None:
            data.update({
                "strategy": self.adversaries.strategy.name.lower(),
                "strategy_id": int(self.adversaries.strategy),
                "num_as_requested": self.adversaries.requested,
                "adversaries": list(self.adversaries.asns),
                "shortfall": self.adversaries.shortfall,
            })
        return data

    def write_run(self, output_dir: str) -> Dict[str, Path]:
        """Write outcomes.csv, censorship.csv and metadata.json into output_dir."""
        out = Path(output_dir)
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputWriteError(str(out), e.strerror or str(e)) from e

        paths = {
            "outcomes": out / "outcomes.csv",
            "censorship": out / "censorship.csv",
            "metadata": out / "metadata.json",
        }
        write_csv(self.outcome_records(), paths["outcomes"], self.OUTCOME_COLUMNS, overwrite=True)
        write_csv(self.censorship_records(), paths["censorship"], self.CENSORSHIP_COLUMNS,
                  overwrite=True)
        try:
            with open(paths["metadata"], 'w') as f:
                json.dump(self.metadata(), f, indent=2)
        except OSError as e:
            raise OutputWriteError(str(paths["metadata"]), e.strerror or str(e)) from e

        logger.info(f"Results written to {out}/")
        return paths


def write_csv(records: List[Dict[str, Any]],
              path,
              columns: List[str],
              overwrite: bool = False) -> Path:
    """Write records as CSV with a fixed column order."""
    path = Path(path)
    if path.exists() and not overwrite:
        raise OutputWriteError(str(path), "output file exists, refusing to overwrite")
    df = pd.DataFrame(records, columns=columns)
    try:
        df.to_csv(path, index=False)
    except OSError as e:
        raise OutputWriteError(str(path), e.strerror or str(e)) from e
    logger.debug(f"Wrote {len(df)} rows to {path}")
    return path
