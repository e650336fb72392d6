"""
Error Taxonomy

Only structural faults are exceptions. Absent content is an empty
result, a broken ledger chain is a verification report, and a rejected
PDF is a typed result value. Nothing in this module is raised for
those.
"""

from __future__ import annotations

from typing import Optional


class DDRPError(Exception):
    """Base class for all DDRP faults."""


class PatternDefinitionError(DDRPError):
    """A pattern definition is ill-formed and cannot enter a registry."""

    def __init__(self, pattern_id: str, reason: str):
        self.pattern_id = pattern_id
        self.reason = reason
        super().__init__(f"{pattern_id}: {reason}")


class PatternExecutionError(DDRPError):
    """A pattern rule failed while scanning text. Aborts the detection call."""

    def __init__(self, pattern_id: str, reason: str, cause: Optional[BaseException] = None):
        self.pattern_id = pattern_id
        self.reason = reason
        self.cause = cause
        super().__init__(f"{pattern_id}: {reason}")


class LedgerIOError(DDRPError):
    """Ledger storage could not be read or written."""


class LedgerClosedError(LedgerIOError):
    """Operation attempted on a ledger handle that is not open."""


class LedgerLockedError(LedgerIOError):
    """Another handle holds the ledger directory lock."""
