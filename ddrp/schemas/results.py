"""
Result Schemas — Detection and Obligation Output

Pydantic models for the JSON documents produced by the detector and
the obligation engine. Field declaration order is serialization order.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


OperatorClassName = Literal["REQ", "DEF", "CAUSE", "SCOPE", "UNIV", "ANCHOR"]
FieldNameValue = Literal["what", "who", "where", "when", "why", "scope"]
StatusValue = Literal["SATISFIED", "OPEN", "CONTRADICTED", "AMBIGUOUS"]
ObligationTypeValue = Literal[
    "REQ_APPLICABILITY", "DEF_CONSISTENCY", "CAUSE_SUPPORT", "SCOPE_BOUNDING",
]


# ============================================================
# DETECTION
# ============================================================

class MatchMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    strength: Optional[Literal["hard", "soft"]] = None
    negated: Optional[bool] = None


class MatchModel(BaseModel):
    operator_class: OperatorClassName
    pattern_id: str
    char_start: int = Field(..., ge=0)
    char_end: int
    matched_text: str
    captures: dict[str, str] = Field(default_factory=dict)
    metadata: MatchMetadata = Field(default_factory=MatchMetadata)

    @model_validator(mode="after")
    def _span_not_empty(self) -> MatchModel:
        if self.char_end <= self.char_start:
            raise ValueError("char_end must be greater than char_start")
        return self


class DetectionResultModel(BaseModel):
    """Detector output document."""
    version: str
    pattern_count: int = Field(..., ge=0)
    input_hash: str
    matches: list[MatchModel]

    @model_validator(mode="after")
    def _globally_ordered(self) -> DetectionResultModel:
        keys = [(m.char_start, m.pattern_id) for m in self.matches]
        if keys != sorted(keys):
            raise ValueError("matches must be ordered by (char_start, pattern_id)")
        return self


# ============================================================
# OBLIGATIONS
# ============================================================

class FieldEvidenceModel(BaseModel):
    field: FieldNameValue
    source_pattern_id: str
    char_start: int
    char_end: int
    value: str


class TriggerSpanModel(BaseModel):
    char_start: int
    char_end: int


class ObligationModel(BaseModel):
    id: str
    obligation_type: ObligationTypeValue
    trigger_pattern_id: str
    trigger_span: TriggerSpanModel
    required_fields: list[FieldNameValue]
    present_fields: list[FieldNameValue]
    missing_fields: list[FieldNameValue]
    status: StatusValue
    evidence: list[FieldEvidenceModel]

    @model_validator(mode="after")
    def _fields_partition_required(self) -> ObligationModel:
        present, missing = set(self.present_fields), set(self.missing_fields)
        if present & missing:
            raise ValueError("present_fields and missing_fields overlap")
        if present | missing != set(self.required_fields):
            raise ValueError("present_fields and missing_fields must cover required_fields")
        return self


class StatusSummaryModel(BaseModel):
    SATISFIED: int = 0
    OPEN: int = 0
    CONTRADICTED: int = 0
    AMBIGUOUS: int = 0


class ObligationResultModel(BaseModel):
    """Obligation engine output document."""
    version: str
    obligation_count: int = Field(..., ge=0)
    status_summary: StatusSummaryModel
    obligations: list[ObligationModel]
