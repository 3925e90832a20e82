"""
Error taxonomy for the censorship simulation toolkit.

Per-payment routing outcomes are measured results, not errors, and never
appear here.
"""

from typing import Optional


class LnCensorError(Exception):
    """Base class for all fatal toolkit errors."""


class MalformedTopology(LnCensorError):
    """The topology description is missing fields or violates a graph invariant."""

    def __init__(self, record: str, reason: str):
        self.record = record
        self.reason = reason
        super().__init__(f"Malformed topology record {record}: {reason}")


class AddressLookupUnavailable(LnCensorError):
    """The address-to-AS dataset could not be loaded."""

    def __init__(self, path: Optional[str], reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"AS dataset {path!r} unavailable: {reason}")


class RoutingUnavailable(LnCensorError):
    """The routing engine could not be invoked."""


class OutputWriteError(LnCensorError):
    """Results could not be written to disk."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write {path}: {reason}")
