from ddrp.schemas.ledger import (
    TransactionChain,
    TransactionEnvironment,
    TransactionInput,
    TransactionOutputs,
    TransactionRecord,
    VerificationReport,
)
from ddrp.schemas.results import (
    DetectionResultModel,
    FieldEvidenceModel,
    MatchModel,
    ObligationModel,
    ObligationResultModel,
    StatusSummaryModel,
    TriggerSpanModel,
)

__all__ = [
    "TransactionChain",
    "TransactionEnvironment",
    "TransactionInput",
    "TransactionOutputs",
    "TransactionRecord",
    "VerificationReport",
    "DetectionResultModel",
    "FieldEvidenceModel",
    "MatchModel",
    "ObligationModel",
    "ObligationResultModel",
    "StatusSummaryModel",
    "TriggerSpanModel",
]
