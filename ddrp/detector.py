"""
Operator Detector — Deterministic Lexical Matching

Scans text against every pattern in a registry and returns operator
matches in one global order: char_start ascending, ties broken by
pattern_id. That order is part of the output contract. Registry
iteration order never leaks into the result.

Patterns are scanned independently. Spans from different patterns may
overlap and no operator class excludes another.

No sentence parsing, no dependency parsing, no semantic resolution.
All operators are document-scoped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from ddrp.errors import PatternExecutionError
from ddrp.hashing import change_fingerprint
from ddrp.registry import DEFAULT_REGISTRY, OperatorClass, PatternDefinition, PatternRegistry

logger = logging.getLogger(__name__)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class OperatorMatch:
    """One occurrence of one pattern. Span is half-open: [char_start, char_end)."""
    operator_class: OperatorClass
    pattern_id: str
    char_start: int
    char_end: int
    matched_text: str
    captures: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def midpoint(self) -> float:
        return (self.char_start + self.char_end) / 2

    def sort_key(self) -> tuple[int, str]:
        return (self.char_start, self.pattern_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator_class": self.operator_class.value,
            "pattern_id": self.pattern_id,
            "char_start": self.char_start,
            "char_end": self.char_end,
            "matched_text": self.matched_text,
            "captures": dict(self.captures),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class DetectionResult:
    """Result of a detection run."""
    version: str
    pattern_count: int
    input_hash: str
    matches: tuple[OperatorMatch, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "pattern_count": self.pattern_count,
            "input_hash": self.input_hash,
            "matches": [m.to_dict() for m in self.matches],
        }

    def count_by_class(self) -> dict[str, int]:
        counts = {cls.value: 0 for cls in OperatorClass}
        for m in self.matches:
            counts[m.operator_class.value] += 1
        return counts


# ============================================================
# SCANNING
# ============================================================

def scan_pattern(pattern: PatternDefinition, text: str) -> list[OperatorMatch]:
    """
    All non-overlapping matches of one pattern in text, left to right.

    Pure: a fresh iterator is created per call, so no cursor survives
    between calls. Any exception from the rule or its metadata rule,
    and any zero-width match, is a PatternExecutionError.
    """
    found: list[OperatorMatch] = []
    try:
        for m in pattern.compiled.finditer(text):
            if m.end() <= m.start():
                raise PatternExecutionError(
                    pattern.id, f"zero-width match at offset {m.start()}"
                )

            captures: dict[str, str] = {}
            for i, name in enumerate(pattern.capture_names, start=1):
                value = m.group(i)
                if value is not None:
                    captures[name] = value

            metadata = pattern.metadata_rule(m) if pattern.metadata_rule else {}

            found.append(OperatorMatch(
                operator_class=pattern.operator_class,
                pattern_id=pattern.id,
                char_start=m.start(),
                char_end=m.end(),
                matched_text=m.group(0),
                captures=captures,
                metadata=dict(metadata),
            ))
    except PatternExecutionError:
        raise
    except Exception as exc:
        raise PatternExecutionError(
            pattern.id, f"rule raised {type(exc).__name__}: {exc}", cause=exc,
        ) from exc
    return found


# ============================================================
# THE DETECTOR
# ============================================================

class OperatorDetector:
    """
    Deterministic operator detector bound to one registry.

    Holds no mutable state. Safe to share across threads.
    """

    def __init__(self, registry: Optional[PatternRegistry] = None):
        self._registry = registry if registry is not None else DEFAULT_REGISTRY

    @property
    def registry(self) -> PatternRegistry:
        return self._registry

    @property
    def version(self) -> str:
        return self._registry.version

    def detect(self, text: str) -> DetectionResult:
        """
        Detect all operators in text.

        Empty text yields an empty match list. A failing pattern fails
        the whole call; no pattern is ever skipped.
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, not {type(text).__name__}")

        start = time.perf_counter()
        matches: list[OperatorMatch] = []
        for pattern in self._registry:
            try:
                matches.extend(scan_pattern(pattern, text))
            except PatternExecutionError as exc:
                logger.warning(
                    "Detection aborted",
                    extra={
                        "pattern_id": exc.pattern_id,
                        "error": exc.reason,
                        "error_type": type(exc.cause).__name__ if exc.cause else None,
                        "input_hash": change_fingerprint(text),
                    },
                )
                raise

        matches.sort(key=OperatorMatch.sort_key)

        result = DetectionResult(
            version=self._registry.version,
            pattern_count=len(self._registry),
            input_hash=change_fingerprint(text),
            matches=tuple(matches),
        )
        logger.debug(
            "Detection complete",
            extra={
                "pattern_count": result.pattern_count,
                "match_count": len(result.matches),
                "input_hash": result.input_hash,
                "duration_ms": round((time.perf_counter() - start) * 1000, 3),
            },
        )
        return result

    def pattern_stats(self) -> dict[str, int]:
        return self._registry.stats()


def detect(text: str, registry: Optional[PatternRegistry] = None) -> DetectionResult:
    """Detect operators in text against registry (default: v0.1 rule table)."""
    if registry is None:
        return operator_detector.detect(text)
    return OperatorDetector(registry).detect(text)


# ============================================================
# DEFAULT DETECTOR
# ============================================================

operator_detector = OperatorDetector()
