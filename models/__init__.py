"""Data models for the X1 Punks inscription server"""

from models.asset import (
    InscriptionRecord,
    MintOutcome,
    MintRecord,
    ProvenanceRecord,
    ProvisionProgress,
    ProvisionStage,
    OUTCOME_FAILED,
    OUTCOME_PARTIAL,
    OUTCOME_SOLD_OUT,
    OUTCOME_SUCCESS,
    utc_timestamp,
)
from models.errors import (
    AlreadyProvisioned,
    InscriptionError,
    InvalidRequest,
    PayloadMissing,
    PersistenceFailure,
    StepFailure,
    UploadFailure,
)
from models.upload import UploadRecord, UploadSummary

__all__ = [
    "AlreadyProvisioned",
    "InscriptionError",
    "InscriptionRecord",
    "InvalidRequest",
    "MintOutcome",
    "MintRecord",
    "OUTCOME_FAILED",
    "OUTCOME_PARTIAL",
    "OUTCOME_SOLD_OUT",
    "OUTCOME_SUCCESS",
    "PayloadMissing",
    "PersistenceFailure",
    "ProvenanceRecord",
    "ProvisionProgress",
    "ProvisionStage",
    "StepFailure",
    "UploadFailure",
    "UploadRecord",
    "UploadSummary",
    "utc_timestamp",
]
