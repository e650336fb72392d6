"""
DDRP — Deterministic Document Reconstruction Protocol

Lexical operator detection, structural obligation tracking, and a
hash-chained execution ledger. Identical input + identical rule set =
identical output.

Public API:
  - detect / OperatorDetector:  Versioned pattern matching, global ordering
  - PatternRegistry:            Immutable rule table (DEFAULT_REGISTRY = v0.1)
  - instantiate:                Obligations with proximity-bound field evidence
  - LedgerHandle:               Append-only, SHA-256 chained transaction records
  - verify_ledger / verify_records: Chain integrity reports
  - canonicalize:               Versioned text normalization
  - analyze_text / analyze_pdf: End-to-end pipeline

Usage:
    from ddrp import detect, instantiate, LedgerHandle
    detection = detect("Users must submit identification within 30 days.")
    obligations = instantiate(detection.matches)
"""

__version__ = "0.2.0"

from ddrp.registry import (
    DEFAULT_REGISTRY,
    REGISTRY_VERSION,
    OperatorClass,
    PatternDefinition,
    PatternRegistry,
)
from ddrp.detector import DetectionResult, OperatorDetector, OperatorMatch, detect
from ddrp.obligations import (
    ENGINE_VERSION,
    PROXIMITY_WINDOW,
    FieldEvidence,
    FieldName,
    ObligationInstance,
    ObligationResult,
    ObligationStatus,
    ObligationType,
    instantiate,
)
from ddrp.ledger import GENESIS_HASH, LedgerHandle, create_record, verify_ledger, verify_records
from ddrp.canonicalizer import canonicalize
from ddrp.pipeline import analyze_pdf, analyze_text, checkpoint
from ddrp.errors import (
    DDRPError,
    LedgerIOError,
    PatternDefinitionError,
    PatternExecutionError,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "REGISTRY_VERSION",
    "OperatorClass",
    "PatternDefinition",
    "PatternRegistry",
    "DetectionResult",
    "OperatorDetector",
    "OperatorMatch",
    "detect",
    "ENGINE_VERSION",
    "PROXIMITY_WINDOW",
    "FieldEvidence",
    "FieldName",
    "ObligationInstance",
    "ObligationResult",
    "ObligationStatus",
    "ObligationType",
    "instantiate",
    "GENESIS_HASH",
    "LedgerHandle",
    "create_record",
    "verify_ledger",
    "verify_records",
    "canonicalize",
    "analyze_pdf",
    "analyze_text",
    "checkpoint",
    "DDRPError",
    "LedgerIOError",
    "PatternDefinitionError",
    "PatternExecutionError",
]
