"""
Obligation Engine — Structural Completeness Tracking

Converts operator matches into obligations and records, per obligation,
which required fields have lexical evidence nearby.

  1. Extract field evidence from each match, locally (no match looks
     at another match).
  2. Create one obligation per triggering match (REQ, DEF, CAUSE, SCOPE).
  3. Bind evidence: the trigger's own evidence, then evidence of every
     other match whose midpoint lies within PROXIMITY_WINDOW characters
     of the trigger's midpoint. First evidence per field wins, direct
     before nearby, nearby in match order.
  4. SATISFIED iff every required field has evidence, else OPEN.

Binding is by character distance only. No sentence, syntactic or
cross-document binding is performed.

CONTRADICTED and AMBIGUOUS are declared but never assigned: "must X"
and "must not X" stay two independent obligations.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from ddrp.detector import OperatorMatch
from ddrp.registry import OperatorClass

logger = logging.getLogger(__name__)

ENGINE_VERSION = "0.1.0"

# Versioned constant. Changing it requires an engine version bump.
PROXIMITY_WINDOW = 500


# ============================================================
# TAXONOMY
# ============================================================

class FieldName(str, Enum):
    WHAT = "what"
    WHO = "who"
    WHERE = "where"
    WHEN = "when"
    WHY = "why"
    SCOPE = "scope"


class ObligationType(str, Enum):
    REQ_APPLICABILITY = "REQ_APPLICABILITY"
    DEF_CONSISTENCY = "DEF_CONSISTENCY"
    CAUSE_SUPPORT = "CAUSE_SUPPORT"
    SCOPE_BOUNDING = "SCOPE_BOUNDING"


class ObligationStatus(str, Enum):
    SATISFIED = "SATISFIED"
    OPEN = "OPEN"
    CONTRADICTED = "CONTRADICTED"  # reserved, never assigned in v0.1
    AMBIGUOUS = "AMBIGUOUS"        # reserved, never assigned in v0.1


REQUIRED_FIELDS: dict[ObligationType, tuple[FieldName, ...]] = {
    ObligationType.REQ_APPLICABILITY: (FieldName.WHAT, FieldName.WHO),
    ObligationType.DEF_CONSISTENCY: (FieldName.WHAT,),
    ObligationType.CAUSE_SUPPORT: (FieldName.WHY,),
    ObligationType.SCOPE_BOUNDING: (FieldName.SCOPE,),
}

TRIGGERS: dict[OperatorClass, ObligationType] = {
    OperatorClass.REQ: ObligationType.REQ_APPLICABILITY,
    OperatorClass.DEF: ObligationType.DEF_CONSISTENCY,
    OperatorClass.CAUSE: ObligationType.CAUSE_SUPPORT,
    OperatorClass.SCOPE: ObligationType.SCOPE_BOUNDING,
}


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class FieldEvidence:
    """Evidence for one field, derived from exactly one match."""
    field: FieldName
    source_pattern_id: str
    char_start: int
    char_end: int
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field.value,
            "source_pattern_id": self.source_pattern_id,
            "char_start": self.char_start,
            "char_end": self.char_end,
            "value": self.value,
        }


@dataclass(frozen=True)
class ObligationInstance:
    id: str
    obligation_type: ObligationType
    trigger_pattern_id: str
    trigger_span: tuple[int, int]
    required_fields: tuple[FieldName, ...]
    present_fields: tuple[FieldName, ...]
    missing_fields: tuple[FieldName, ...]
    status: ObligationStatus
    evidence: tuple[FieldEvidence, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "obligation_type": self.obligation_type.value,
            "trigger_pattern_id": self.trigger_pattern_id,
            "trigger_span": {
                "char_start": self.trigger_span[0],
                "char_end": self.trigger_span[1],
            },
            "required_fields": [f.value for f in self.required_fields],
            "present_fields": [f.value for f in self.present_fields],
            "missing_fields": [f.value for f in self.missing_fields],
            "status": self.status.value,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True)
class ObligationResult:
    version: str
    obligations: tuple[ObligationInstance, ...]
    status_summary: dict[str, int]

    @property
    def obligation_count(self) -> int:
        return len(self.obligations)

    def of_type(self, obligation_type: ObligationType) -> list[ObligationInstance]:
        return [o for o in self.obligations if o.obligation_type == obligation_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "obligation_count": self.obligation_count,
            "status_summary": dict(self.status_summary),
            "obligations": [o.to_dict() for o in self.obligations],
        }


# ============================================================
# FIELD EXTRACTION: one pure function per operator class
# ============================================================

# Closed vocabularies. Extending them is a versioned rule change.
SCOPE_WHO = re.compile(
    r"\b(?:for\s+(?:all\s+)?(?:users|customers|clients|employees|members|participants|minors|children))\b",
    re.IGNORECASE | re.ASCII,
)
SCOPE_WHERE = re.compile(
    r"\b(?:in\s+(?:the\s+)?(?:EU|US|UK|United\s+States|European\s+Union|California|Delaware))\b",
    re.IGNORECASE | re.ASCII,
)
SCOPE_WHEN = re.compile(
    r"\b(?:within\s+\d+\s+(?:days?|weeks?|months?|years?|hours?|minutes?|business\s+days?))\b",
    re.IGNORECASE | re.ASCII,
)


def _evidence(match: OperatorMatch, field_name: FieldName, value: str) -> FieldEvidence:
    return FieldEvidence(
        field=field_name,
        source_pattern_id=match.pattern_id,
        char_start=match.char_start,
        char_end=match.char_end,
        value=value,
    )


def _extract_def(match: OperatorMatch) -> list[FieldEvidence]:
    term = match.captures.get("term")
    if term:
        return [_evidence(match, FieldName.WHAT, term)]
    return []


def _extract_cause(match: OperatorMatch) -> list[FieldEvidence]:
    # The match itself is the justification link.
    return [_evidence(match, FieldName.WHY, match.matched_text)]


def _extract_scope(match: OperatorMatch) -> list[FieldEvidence]:
    phrase = match.captures.get("scope_phrase") or match.matched_text
    evidence = []
    if SCOPE_WHO.search(phrase):
        evidence.append(_evidence(match, FieldName.WHO, phrase))
    if SCOPE_WHERE.search(phrase):
        evidence.append(_evidence(match, FieldName.WHERE, phrase))
    if SCOPE_WHEN.search(phrase):
        evidence.append(_evidence(match, FieldName.WHEN, phrase))
    evidence.append(_evidence(match, FieldName.SCOPE, phrase))
    return evidence


def _extract_nothing(match: OperatorMatch) -> list[FieldEvidence]:
    # REQ needs nearby evidence; "what" would need sentence parsing.
    # UNIV and ANCHOR carry no WWWWHW fields.
    return []


FIELD_EXTRACTORS: dict[OperatorClass, Callable[[OperatorMatch], list[FieldEvidence]]] = {
    OperatorClass.REQ: _extract_nothing,
    OperatorClass.DEF: _extract_def,
    OperatorClass.CAUSE: _extract_cause,
    OperatorClass.SCOPE: _extract_scope,
    OperatorClass.UNIV: _extract_nothing,
    OperatorClass.ANCHOR: _extract_nothing,
}

_unmapped = set(OperatorClass) - set(FIELD_EXTRACTORS)
if _unmapped:
    raise RuntimeError(
        "operator classes without a field extractor: "
        + ", ".join(sorted(c.value for c in _unmapped))
    )


def extract_fields(match: OperatorMatch) -> list[FieldEvidence]:
    """Field evidence testified to by this match alone."""
    return FIELD_EXTRACTORS[match.operator_class](match)


# ============================================================
# BINDING AND STATUS
# ============================================================

def nearby_indices(
    trigger_index: int,
    matches: list[OperatorMatch],
    window: int = PROXIMITY_WINDOW,
) -> list[int]:
    """Indices of other matches whose midpoint is within window of the trigger's."""
    trigger_mid = matches[trigger_index].midpoint
    return [
        i for i, m in enumerate(matches)
        if i != trigger_index and abs(m.midpoint - trigger_mid) <= window
    ]


def bind_evidence(
    direct: Iterable[FieldEvidence],
    nearby: Iterable[FieldEvidence],
) -> list[FieldEvidence]:
    """Keep the first evidence item per field, direct before nearby."""
    seen: set[FieldName] = set()
    kept = []
    for ev in list(direct) + list(nearby):
        if ev.field not in seen:
            seen.add(ev.field)
            kept.append(ev)
    return kept


def determine_status(missing: tuple[FieldName, ...]) -> ObligationStatus:
    return ObligationStatus.SATISFIED if not missing else ObligationStatus.OPEN


def obligation_id(obligation_type: ObligationType, index: int) -> str:
    return f"{obligation_type.value}_{index:03d}"


# ============================================================
# THE ENGINE
# ============================================================

def instantiate(matches: Iterable[OperatorMatch]) -> ObligationResult:
    """
    Convert an ordered match list into obligations.

    Pure. Matches are processed in the order given, which for detector
    output is the global (char_start, pattern_id) order, so ids and
    evidence selection are deterministic.
    """
    ordered = list(matches)
    per_match = [extract_fields(m) for m in ordered]
    counters = {t: 0 for t in ObligationType}
    obligations: list[ObligationInstance] = []

    for idx, match in enumerate(ordered):
        obl_type = TRIGGERS.get(match.operator_class)
        if obl_type is None:
            continue

        nearby = [
            ev
            for j in nearby_indices(idx, ordered)
            for ev in per_match[j]
        ]
        evidence = bind_evidence(per_match[idx], nearby)
        covered = {ev.field for ev in evidence}

        required = REQUIRED_FIELDS[obl_type]
        present = tuple(f for f in required if f in covered)
        missing = tuple(f for f in required if f not in covered)

        counters[obl_type] += 1
        obligations.append(ObligationInstance(
            id=obligation_id(obl_type, counters[obl_type]),
            obligation_type=obl_type,
            trigger_pattern_id=match.pattern_id,
            trigger_span=(match.char_start, match.char_end),
            required_fields=required,
            present_fields=present,
            missing_fields=missing,
            status=determine_status(missing),
            evidence=tuple(evidence),
        ))

    summary = {s.value: 0 for s in ObligationStatus}
    for o in obligations:
        summary[o.status.value] += 1

    logger.debug(
        "Obligations instantiated",
        extra={"match_count": len(ordered), "obligation_count": len(obligations)},
    )
    return ObligationResult(
        version=ENGINE_VERSION,
        obligations=tuple(obligations),
        status_summary=summary,
    )

