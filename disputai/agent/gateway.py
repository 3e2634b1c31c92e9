"""Writes a finished dispute and its proof bundle."""

from typing import Sequence

from pydantic import BaseModel

from disputai.config import settings
from disputai.data.storage import StorageBackend
from disputai.errors import IdentityMissingError, PersistenceError, StorageError
from disputai.models.dispute import DisputeFields
from disputai.models.evidence import EvidenceItem
from disputai.utils.logging import AuditLogger, get_logger

logger = get_logger("gateway", settings.log_level)


class SubmissionResult(BaseModel):
    dispute_id: str
    proof_bundle_id: str | None = None
    proof_bundle_error: str | None = None


def proof_bundle_payload(
    user_id: str,
    dispute_id: str,
    evidence: Sequence[EvidenceItem],
    evidence_type: str | None = None,
    evidence_description: str | None = None,
) -> dict:
    """Bundle row for uploaded items; the first item is the primary file."""
    return {
        "user_id": user_id,
        "dispute_id": dispute_id,
        "receipt_url": evidence[0].url,
        "screenshot_urls": [item.url for item in evidence[1:]],
        "evidence_source": "user_upload",
        "dispute_type": evidence_type,
        "user_description": evidence_description,
        "policy_snapshot": None,
    }


class DisputeGateway:
    """Creates the dispute record, then the proof bundle if there is evidence.

    A failed bundle write does not undo the dispute: the dispute stays and
    later views show it without proof.
    """

    def __init__(self, storage: StorageBackend, audit_logger: AuditLogger | None = None):
        self.storage = storage
        self.audit_logger = audit_logger

    def submit(
        self,
        user_id: str | None,
        fields: DisputeFields,
        evidence: Sequence[EvidenceItem] = (),
        evidence_type: str | None = None,
        evidence_description: str | None = None,
    ) -> SubmissionResult:
        """Persist a dispute.

        Args:
            user_id: Owner of the dispute
            fields: Validated dispute fields
            evidence: Uploaded items in upload order; the first one is primary
            evidence_type: Evidence classification chosen during upload
            evidence_description: Free text entered during upload

        Returns:
            SubmissionResult with the new dispute ID

        Raises:
            IdentityMissingError: If user_id is empty
            PersistenceError: If the dispute record was not created
        """
        if not user_id:
            raise IdentityMissingError("A logged-in user is required to file a dispute.")

        payload = {
            "user_id": user_id,
            **fields.model_dump(exclude_none=True),
            "user_confirmed_input": True,
            "status": "draft",
            "archived": False,
            "user_plan": "free",
            "jurisdiction_flag": settings.jurisdiction,
        }
        try:
            dispute_id = self.storage.insert_dispute(payload)
        except StorageError as e:
            raise PersistenceError(f"Dispute could not be saved: {e}") from e
        if not dispute_id:
            raise PersistenceError("Dispute could not be saved: no identifier returned")

        if self.audit_logger:
            self.audit_logger.log_dispute_created(dispute_id, payload, len(evidence))

        result = SubmissionResult(dispute_id=dispute_id)
        if not evidence:
            return result

        bundle = proof_bundle_payload(
            user_id, dispute_id, evidence, evidence_type, evidence_description
        )
        try:
            result.proof_bundle_id = self.storage.insert_proof_bundle(bundle)
        except StorageError as e:
            logger.warning(f"Proof bundle for dispute {dispute_id} not saved: {e}")
            result.proof_bundle_error = str(e)
            if self.audit_logger:
                self.audit_logger.log_proof_bundle_failed(dispute_id, str(e))
        return result
