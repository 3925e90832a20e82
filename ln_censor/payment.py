"""
Payments and their outcomes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class OutcomeKind(Enum):
    """Terminal classification of a payment."""
    DELIVERED = "delivered"
    FAILED_NO_PATH = "failed_no_path"
    FAILED_CENSORED = "failed_censored"


@dataclass(frozen=True)
class PaymentOutcome:
    """Tagged outcome; asn is set only for censored payments."""
    kind: OutcomeKind
    asn: Optional[int] = None

    def __post_init__(self):
        if (self.kind == OutcomeKind.FAILED_CENSORED) != (self.asn is not None):
            raise ValueError(f"{self.kind.name} outcome with asn={self.asn}")

    @classmethod
    def delivered(cls) -> 'PaymentOutcome':
        return cls(OutcomeKind.DELIVERED)

    @classmethod
    def no_path(cls) -> 'PaymentOutcome':
        return cls(OutcomeKind.FAILED_NO_PATH)

    @classmethod
    def censored(cls, asn: int) -> 'PaymentOutcome':
        return cls(OutcomeKind.FAILED_CENSORED, asn)

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.DELIVERED

    def __str__(self) -> str:
        if self.kind == OutcomeKind.FAILED_CENSORED:
            return f"{self.kind.value}({self.asn})"
        return self.kind.value


class PaymentState(Enum):
    CREATED = "created"
    ROUTING_ATTEMPTED = "routing_attempted"
    DONE = "done"


@dataclass
class Payment:
    """A single simulated transfer between two node indices."""
    index: int
    source: int
    destination: int
    amount_msat: int
    seed: int = 0

    state: PaymentState = PaymentState.CREATED
    path: Optional[List[int]] = None
    outcome: Optional[PaymentOutcome] = None

    @property
    def payment_id(self) -> str:
        return f"{self.seed}-{self.index}"

    @property
    def intermediates(self) -> List[int]:
        """Hops strictly between source and destination."""
        if not self.path:
            return []
        return self.path[1:-1]

    def mark_routed(self, path: Optional[List[int]]) -> None:
        if self.state != PaymentState.CREATED:
            raise RuntimeError(f"Payment {self.payment_id} already routed")
        self.path = path
        self.state = PaymentState.ROUTING_ATTEMPTED

    def finish(self, outcome: PaymentOutcome) -> None:
        if self.state != PaymentState.ROUTING_ATTEMPTED:
            raise RuntimeError(f"Payment {self.payment_id} finished before routing")
        self.outcome = outcome
        self.state = PaymentState.DONE
