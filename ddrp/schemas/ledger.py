"""
Ledger Schemas — Transaction Records

Records are parsed in strict mode with unknown fields forbidden. A
stored "5" where 5 was written, or an injected key, must surface as a
verification finding rather than be coerced into a matching hash.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


_RECORD_CONFIG = ConfigDict(strict=True, extra="forbid", frozen=True)

InputFormat = Literal["text/plain", "application/pdf"]


class TransactionInput(BaseModel):
    model_config = _RECORD_CONFIG

    input_hash: str
    input_length: int
    input_format: InputFormat


class TransactionOutputs(BaseModel):
    model_config = _RECORD_CONFIG

    detection_hash: str
    obligations_hash: str


class TransactionEnvironment(BaseModel):
    model_config = _RECORD_CONFIG

    python_version: str
    os: str
    ddrp_version: str
    ddrp_commit: Optional[str] = None


class TransactionChain(BaseModel):
    model_config = _RECORD_CONFIG

    previous_transaction_hash: str
    transaction_hash: str


class TransactionRecord(BaseModel):
    """One ledger entry. Appended once, never mutated."""
    model_config = _RECORD_CONFIG

    ddrp_version: str
    transaction_version: str
    transaction_id: str
    timestamp_local: str
    timezone: str
    input: TransactionInput
    outputs: TransactionOutputs
    environment: TransactionEnvironment
    chain: TransactionChain
    disclaimer: str

    def hashed_content(self) -> dict:
        """Every field except chain.transaction_hash, in fixed order."""
        env = self.environment.model_dump(exclude_none=True)
        return {
            "ddrp_version": self.ddrp_version,
            "transaction_version": self.transaction_version,
            "transaction_id": self.transaction_id,
            "timestamp_local": self.timestamp_local,
            "timezone": self.timezone,
            "input": self.input.model_dump(),
            "outputs": self.outputs.model_dump(),
            "environment": env,
            "previous_transaction_hash": self.chain.previous_transaction_hash,
            "disclaimer": self.disclaimer,
        }

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)


class VerificationReport(BaseModel):
    """Outcome of a chain walk. Integrity failures live here, never in exceptions."""
    valid: bool
    errors: list[str] = Field(default_factory=list)
    count: int = 0
