"""
Protocol Metadata — Attribution, Provenance, Envelope

Every exported document can be wrapped in an envelope naming the
protocol version and the chain of custody of its input:

    {"protocol": {...}, "provenance": {...}, "timestamp": "...", "data": {...}}
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

from ddrp.config import settings


@dataclass(frozen=True)
class ProtocolMetadata:
    name: str
    version: str
    doi: Optional[str]
    doi_status: str  # "unassigned" | "assigned"
    spec_url: Optional[str] = None


PROTOCOL_META = ProtocolMetadata(
    name="DDRP",
    version=settings.DDRP_VERSION,
    doi=None,
    doi_status="unassigned",
    spec_url="https://github.com/btisler-DS/ddrp",
)


def format_doi(meta: ProtocolMetadata = PROTOCOL_META) -> str:
    if meta.doi_status == "assigned" and meta.doi:
        return f"DOI: {meta.doi}"
    return "DOI: unassigned (preprint planned)"


def assign_doi(meta: ProtocolMetadata, doi: str) -> ProtocolMetadata:
    """New metadata with the DOI assigned. The input is left untouched."""
    return replace(meta, doi=doi, doi_status="assigned")


@dataclass(frozen=True)
class InputProvenance:
    """
    Chain of custody for one input.

    canonical_hash is the SHA-256/16 of the text actually analysed;
    input_hash is the detector's change fingerprint of that text;
    pdf_hash is the SHA-256/16 of the original PDF bytes, if any.
    """
    input_format: str  # "text" | "pdf"
    canonical_hash: str
    input_hash: str
    pdf_hash: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"input_format": self.input_format}
        if self.pdf_hash is not None:
            out["pdf_hash"] = self.pdf_hash
        out["canonical_hash"] = self.canonical_hash
        out["input_hash"] = self.input_hash
        return out


def text_provenance(canonical_hash: str, input_hash: str) -> InputProvenance:
    return InputProvenance("text", canonical_hash, input_hash)


def pdf_provenance(pdf_hash: str, canonical_hash: str, input_hash: str) -> InputProvenance:
    return InputProvenance("pdf", canonical_hash, input_hash, pdf_hash=pdf_hash)


def wrap_with_protocol(
    data: Any,
    provenance: InputProvenance,
    meta: ProtocolMetadata = PROTOCOL_META,
    timestamp: Optional[str] = None,
) -> dict[str, Any]:
    """Wrap a result (anything with to_dict(), or a dict) in the protocol envelope."""
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    return {
        "protocol": {k: v for k, v in asdict(meta).items() if v is not None or k == "doi"},
        "provenance": provenance.to_dict(),
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "data": payload,
    }
