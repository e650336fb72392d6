"""
Text Canonicalizer — Versioned Structural Normalization

Applies a fixed, ordered list of pure string rules before detection so
that layout noise (CRLF, runs of spaces, page numbers) does not change
match offsets between otherwise identical documents. No rule interprets
text; all of them only normalize structure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ddrp.hashing import sha256_16

CANON_VERSION = "0.2.0"


@dataclass(frozen=True)
class CanonRule:
    id: str
    description: str
    apply: Callable[[str], str]


@dataclass(frozen=True)
class CanonResult:
    version: str
    rule_count: int
    applied_rules: tuple[str, ...]
    original_length: int
    canonical_length: int
    canonical_text: str
    canonical_hash: str

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "rule_count": self.rule_count,
            "applied_rules": list(self.applied_rules),
            "original_length": self.original_length,
            "canonical_length": self.canonical_length,
            "canonical_text": self.canonical_text,
            "canonical_hash": self.canonical_hash,
        }


_NEWLINES = re.compile(r"\r\n?")
_HSPACE = re.compile(r"[ \t]+")
_BLANK_RUN = re.compile(r"\n{3,}")
_PAGE_NUMBER = re.compile(r"^\d+$", re.MULTILINE | re.ASCII)


# Order matters: page-number removal leaves empty lines behind, which
# the second blank-run collapse cleans up.
CANON_RULES_V0_2: tuple[CanonRule, ...] = (
    CanonRule(
        "CANON_NORMALIZE_NEWLINES_001",
        "Normalize line endings to LF",
        lambda text: _NEWLINES.sub("\n", text),
    ),
    CanonRule(
        "CANON_COLLAPSE_WHITESPACE_001",
        "Collapse multiple spaces/tabs to single space",
        lambda text: _HSPACE.sub(" ", text),
    ),
    CanonRule(
        "CANON_TRIM_LINES_001",
        "Trim leading/trailing whitespace from each line",
        lambda text: "\n".join(line.strip() for line in text.split("\n")),
    ),
    CanonRule(
        "CANON_PRESERVE_PARAGRAPHS_001",
        "Preserve paragraph breaks (3+ newlines to double newline)",
        lambda text: _BLANK_RUN.sub("\n\n", text),
    ),
    CanonRule(
        "CANON_REMOVE_PAGE_NUMBERS_001",
        "Remove standalone page numbers (digits only on a line)",
        lambda text: _PAGE_NUMBER.sub("", text),
    ),
    CanonRule(
        "CANON_COLLAPSE_EMPTY_LINES_001",
        "Collapse consecutive empty lines after page number removal",
        lambda text: _BLANK_RUN.sub("\n\n", text),
    ),
    CanonRule(
        "CANON_TRIM_DOCUMENT_001",
        "Trim leading/trailing whitespace from entire document",
        lambda text: text.strip(),
    ),
)


def canonicalize(
    raw_text: str,
    rules: Optional[Sequence[CanonRule]] = None,
    version: Optional[str] = None,
) -> CanonResult:
    """Apply rules in order and return the canonical text with its hash."""
    active = tuple(rules) if rules is not None else CANON_RULES_V0_2
    text = raw_text
    applied = []
    for rule in active:
        text = rule.apply(text)
        applied.append(rule.id)

    return CanonResult(
        version=version or CANON_VERSION,
        rule_count=len(active),
        applied_rules=tuple(applied),
        original_length=len(raw_text),
        canonical_length=len(text),
        canonical_text=text,
        canonical_hash=sha256_16(text),
    )
