"""Models module - Pydantic data models."""

from .dispute import DisputeFields, DisputeRecord, DisputeLogEntry
from .evidence import EvidenceFile, EvidenceItem, UploadOutcome, ProofBundleRecord

__all__ = [
    "DisputeFields",
    "DisputeRecord",
    "DisputeLogEntry",
    "EvidenceFile",
    "EvidenceItem",
    "UploadOutcome",
    "ProofBundleRecord",
]
