"""
Pipeline — Analysis Orchestrator

Runs one document through the stages:

    text ─┬─> canonicalize ─> detect ─> instantiate ─┬─> result
    pdf ──┘ (ingest first; rejections stop here)     └─> ledger append (optional)

This module coordinates between the canonicalizer, the detector, the
obligation engine and the ledger. It adds no semantics of its own: the
detector and engine never see the ledger, and the ledger only ever
sees hashes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ddrp.canonicalizer import CanonResult, canonicalize
from ddrp.config import settings
from ddrp.detector import DetectionResult, detect
from ddrp.hashing import detection_hash, obligation_hash, sha256_16
from ddrp.ingest import PdfExtractor, PdfIngestResult, ingest_pdf
from ddrp.ledger import LedgerHandle
from ddrp.obligations import ObligationResult, instantiate
from ddrp.protocol import InputProvenance, pdf_provenance, text_provenance, wrap_with_protocol
from ddrp.registry import PatternRegistry
from ddrp.schemas.ledger import TransactionInput, TransactionOutputs, TransactionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Everything one run produced. Rejected PDFs carry only `rejection`."""
    detection: Optional[DetectionResult] = None
    obligations: Optional[ObligationResult] = None
    canon: Optional[CanonResult] = None
    provenance: Optional[InputProvenance] = None
    record: Optional[TransactionRecord] = None
    rejection: Optional[PdfIngestResult] = None

    @property
    def rejected(self) -> bool:
        return self.rejection is not None

    def envelopes(self) -> dict[str, Any]:
        """Detection and obligation documents wrapped with protocol metadata."""
        if self.rejected:
            return {}
        return {
            "detection": wrap_with_protocol(self.detection, self.provenance),
            "obligations": wrap_with_protocol(self.obligations, self.provenance),
        }


def _run(
    text: str,
    registry: Optional[PatternRegistry],
    canonical: bool,
) -> tuple[Optional[CanonResult], str, DetectionResult, ObligationResult]:
    canon = canonicalize(text) if canonical else None
    analysed = canon.canonical_text if canon else text
    detection = detect(analysed, registry)
    obligations = instantiate(detection.matches)
    return canon, analysed, detection, obligations


def _record(
    ledger: LedgerHandle,
    input_hash: str,
    input_length: int,
    input_format: str,
    detection: DetectionResult,
    obligations: ObligationResult,
) -> TransactionRecord:
    return ledger.append(
        TransactionInput(
            input_hash=input_hash,
            input_length=input_length,
            input_format=input_format,
        ),
        TransactionOutputs(
            detection_hash=detection_hash(detection),
            obligations_hash=obligation_hash(obligations),
        ),
    )


def analyze_text(
    text: str,
    registry: Optional[PatternRegistry] = None,
    ledger: Optional[LedgerHandle] = None,
    canonical: Optional[bool] = None,
) -> PipelineResult:
    """
    Analyse plain text.

    Canonicalization follows settings.CANONICALIZE_TEXT unless canonical
    is given. When a ledger handle is passed, a transaction is appended.
    """
    use_canon = settings.CANONICALIZE_TEXT if canonical is None else canonical
    canon, analysed, detection, obligations = _run(text, registry, use_canon)
    provenance = text_provenance(
        canonical_hash=canon.canonical_hash if canon else sha256_16(analysed),
        input_hash=detection.input_hash,
    )

    record = None
    if ledger is not None:
        record = _record(
            ledger, provenance.canonical_hash, len(text), "text/plain",
            detection, obligations,
        )

    logger.info(
        "Text analysed",
        extra={
            "match_count": len(detection.matches),
            "obligation_count": obligations.obligation_count,
            "input_hash": detection.input_hash,
        },
    )
    return PipelineResult(
        detection=detection,
        obligations=obligations,
        canon=canon,
        provenance=provenance,
        record=record,
    )


def analyze_pdf(
    data: bytes,
    extractor: PdfExtractor,
    registry: Optional[PatternRegistry] = None,
    ledger: Optional[LedgerHandle] = None,
) -> PipelineResult:
    """
    Analyse a PDF through an injected extractor.

    Extracted text is always canonicalized. A rejection is returned
    as-is and nothing is appended to the ledger.
    """
    ingest = ingest_pdf(data, extractor)
    if not ingest.success:
        logger.info(
            "PDF rejected",
            extra={"error": ingest.rejection.value, "input_hash": ingest.pdf_hash},
        )
        return PipelineResult(rejection=ingest)

    canon, _, detection, obligations = _run(ingest.raw_text, registry, True)
    provenance = pdf_provenance(
        pdf_hash=ingest.pdf_hash,
        canonical_hash=canon.canonical_hash,
        input_hash=detection.input_hash,
    )

    record = None
    if ledger is not None:
        record = _record(
            ledger, ingest.pdf_hash, len(data), "application/pdf",
            detection, obligations,
        )

    return PipelineResult(
        detection=detection,
        obligations=obligations,
        canon=canon,
        provenance=provenance,
        record=record,
    )


def checkpoint(
    text: str,
    runs: int = 10,
    registry: Optional[PatternRegistry] = None,
) -> dict[str, Any]:
    """
    Re-run detection and obligations `runs` times and compare hashes.

    Returns a summary with `identical` plus the per-class match counts
    and status summary of the first run.
    """
    detection_hashes = set()
    obligation_hashes = set()
    first: Optional[tuple[DetectionResult, ObligationResult]] = None
    for _ in range(runs):
        detection = detect(text, registry)
        obligations = instantiate(detection.matches)
        detection_hashes.add(detection_hash(detection))
        obligation_hashes.add(obligation_hash(obligations))
        if first is None:
            first = (detection, obligations)

    summary: dict[str, Any] = {
        "runs": runs,
        "identical": len(detection_hashes) <= 1 and len(obligation_hashes) <= 1,
    }
    if first is not None:
        detection, obligations = first
        summary.update({
            "version": detection.version,
            "pattern_count": detection.pattern_count,
            "match_count": len(detection.matches),
            "input_hash": detection.input_hash,
            "by_class": detection.count_by_class(),
            "obligation_count": obligations.obligation_count,
            "status_summary": dict(obligations.status_summary),
        })
    return summary
