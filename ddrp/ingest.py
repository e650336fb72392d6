"""
PDF Ingestion Contract

DDRP does not parse PDF bytes itself. A PdfExtractor is injected by the
caller (any library that can return per-page text), and this module
turns its outcome into a typed result:

  - success:          raw text (pages joined by a blank line) + page count
  - ENCRYPTED:        the extractor raised EncryptedPdfError
  - SCANNED_SUSPECT:  average characters per page below the threshold;
                      OCR is not supported
  - EMPTY:            no pages, or only whitespace at or above the threshold
  - PARSE_ERROR:      the extractor raised anything else

Rejections are values, not exceptions. The core forwards them and never
interprets them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from ddrp.config import settings
from ddrp.hashing import sha256_16

logger = logging.getLogger(__name__)

PDF_INGEST_VERSION = "0.2.0"


class PdfRejection(str, Enum):
    ENCRYPTED = "ENCRYPTED"
    SCANNED_SUSPECT = "SCANNED_SUSPECT"
    EMPTY = "EMPTY"
    PARSE_ERROR = "PARSE_ERROR"


class EncryptedPdfError(Exception):
    """Raised by an extractor when the document needs a password."""


@dataclass(frozen=True)
class ExtractedPdf:
    """What an extractor hands back: text per page plus document info."""
    pages: tuple[str, ...]
    producer: Optional[str] = None
    creation_date: Optional[str] = None


class PdfExtractor(Protocol):
    def __call__(self, data: bytes) -> ExtractedPdf: ...


@dataclass(frozen=True)
class PdfMetadata:
    is_encrypted: bool = False
    is_scanned: bool = False
    producer: Optional[str] = None
    creation_date: Optional[str] = None


@dataclass(frozen=True)
class PdfIngestResult:
    version: str
    pdf_hash: str
    page_count: int = 0
    raw_text: str = ""
    rejection: Optional[PdfRejection] = None
    message: str = ""
    metadata: PdfMetadata = field(default_factory=PdfMetadata)

    @property
    def success(self) -> bool:
        return self.rejection is None


def ingest_pdf(
    data: bytes,
    extractor: PdfExtractor,
    min_chars_per_page: Optional[int] = None,
) -> PdfIngestResult:
    """Extract text from PDF bytes through extractor and classify the outcome."""
    threshold = settings.PDF_MIN_CHARS_PER_PAGE if min_chars_per_page is None else min_chars_per_page
    pdf_hash = sha256_16(data)

    try:
        extracted = extractor(data)
    except EncryptedPdfError:
        return PdfIngestResult(
            version=PDF_INGEST_VERSION,
            pdf_hash=pdf_hash,
            rejection=PdfRejection.ENCRYPTED,
            message="This PDF is encrypted. DDRP cannot process encrypted PDFs.",
            metadata=PdfMetadata(is_encrypted=True),
        )
    except Exception as exc:
        logger.warning(
            "PDF extraction failed",
            extra={"error": str(exc), "error_type": type(exc).__name__},
        )
        return PdfIngestResult(
            version=PDF_INGEST_VERSION,
            pdf_hash=pdf_hash,
            rejection=PdfRejection.PARSE_ERROR,
            message=f"Failed to parse PDF: {exc}",
        )

    pages = extracted.pages
    page_count = len(pages)
    raw_text = "\n\n".join(pages)

    # No pages means no average: such a document can only be EMPTY.
    avg_chars = sum(len(p) for p in pages) / page_count if page_count else None
    if avg_chars is not None and avg_chars < threshold:
        return PdfIngestResult(
            version=PDF_INGEST_VERSION,
            pdf_hash=pdf_hash,
            page_count=page_count,
            rejection=PdfRejection.SCANNED_SUSPECT,
            message=(
                f"PDF appears to be scanned ({round(avg_chars)} chars/page, "
                f"threshold: {threshold}). OCR is not supported."
            ),
            metadata=PdfMetadata(is_scanned=True),
        )

    if not raw_text.strip():
        return PdfIngestResult(
            version=PDF_INGEST_VERSION,
            pdf_hash=pdf_hash,
            page_count=page_count,
            rejection=PdfRejection.EMPTY,
            message="No text could be extracted from this PDF.",
        )

    return PdfIngestResult(
        version=PDF_INGEST_VERSION,
        pdf_hash=pdf_hash,
        page_count=page_count,
        raw_text=raw_text,
        metadata=PdfMetadata(
            producer=extracted.producer,
            creation_date=extracted.creation_date,
        ),
    )
