"""Dispute management tools for the current user."""

from typing import Any, Literal

from langchain_core.tools import tool

from disputai.agent.evidence import EvidenceCollector, read_evidence_files
from disputai.agent.gateway import proof_bundle_payload
from disputai.config import settings
from disputai.data.storage import get_storage
from disputai.errors import StorageError
from disputai.models.dispute import DisputeLogEntry
from disputai.models.evidence import EVIDENCE_TYPES, UploadOutcome
from disputai.utils.logging import AuditLogger, get_logger
from disputai.utils.session import get_current_user_id

logger = get_logger("disputes", settings.log_level)

PROGRESS_STEPS = ["Proof", "Template", "PDF"]
NO_PROOF_WARNING = "No proof uploaded yet. Please upload at least one proof to proceed."


def _progress_step(proof_count: int, pdf_ready: bool) -> int:
    """1-based index into PROGRESS_STEPS. Nothing counts as done before the first proof."""
    if proof_count == 0:
        return 1
    return 3 if pdf_ready else 2


def _next_step_message(proof_count: int, pdf_ready: bool) -> str:
    if proof_count == 0:
        return "Step 1: upload at least one proof document so we can start building your case."
    if proof_count == 1 and not pdf_ready:
        return "Good start! Add one more document of a different type to strengthen your case."
    if not pdf_ready:
        return "Your documents look good. Generate the dispute letter, then export it as PDF."
    return "Your dispute PDF is ready. Download it and send it to the merchant or your bank."


def _not_logged_in() -> dict[str, Any]:
    return {"success": False, "message": "Please log in to manage your disputes."}


def _not_found(dispute_id: str) -> dict[str, Any]:
    return {"success": False, "message": f"Dispute {dispute_id} not found."}


def _storage_failure(e: StorageError) -> dict[str, Any]:
    logger.error(f"Dispute storage error: {e}")
    return {"success": False, "message": f"Your disputes are unavailable right now: {e}"}


def _audit_logger(user_id: str) -> AuditLogger:
    return AuditLogger(
        log_dir=settings.audit_log_dir,
        user_id=user_id,
        use_presidio=settings.audit_use_presidio,
    )


def _record_action(
    storage,
    dispute_id: str,
    user_id: str,
    action: Literal["archived", "restored", "deleted"],
) -> str | None:
    """Write the dispute log entry; returns a warning if it could not be stored."""
    _audit_logger(user_id).log_dispute_action(dispute_id, action)
    try:
        storage.insert_dispute_log(DisputeLogEntry(dispute_id=dispute_id, user_id=user_id, action=action))
    except StorageError as e:
        logger.warning(f"Dispute log for {dispute_id} ({action}) not saved: {e}")
        return f"The change was made but could not be logged: {e}"
    return None


def _upload_summary(outcome: UploadOutcome) -> dict[str, Any]:
    if outcome.ok:
        return {"name": outcome.name, "stored": True, "url": outcome.item.url}
    return {"name": outcome.name, "stored": False, "error": outcome.error}


@tool
def list_user_disputes(include_archived: bool = False) -> dict[str, Any]:
    """List the current user's disputes, newest first.

    Args:
        include_archived: Also list archived disputes

    Returns:
        Dictionary with the list of disputes
    """
    user_id = get_current_user_id()
    if not user_id:
        return _not_logged_in()

    try:
        records = get_storage().list_disputes(user_id, archived=None if include_archived else False)
    except StorageError as e:
        return _storage_failure(e)

    if not records:
        return {
            "success": True,
            "count": 0,
            "disputes": [],
            "message": "You have no disputes on file.",
        }

    return {
        "success": True,
        "count": len(records),
        "disputes": [r.to_display_dict() for r in records],
        "message": f"Found {len(records)} dispute(s) on file.",
    }


@tool
def get_dispute_detail(dispute_id: str) -> dict[str, Any]:
    """Show one dispute with its proof files and progress.

    Args:
        dispute_id: The dispute ID to show

    Returns:
        Dictionary with the dispute, its proofs, the progress step and a next-step hint
    """
    user_id = get_current_user_id()
    if not user_id:
        return _not_logged_in()

    storage = get_storage()
    try:
        record = storage.get_dispute(dispute_id, user_id)
        if record is None:
            return _not_found(dispute_id)
        bundles = storage.get_proof_bundles(dispute_id, user_id)
    except StorageError as e:
        return _storage_failure(e)

    proofs = [url for bundle in bundles for url in bundle.urls]
    pdf_ready = bool(record.pdf_url)
    step = _progress_step(len(proofs), pdf_ready)

    result = {
        "success": True,
        "dispute": record.to_display_dict(),
        "proofs": proofs,
        "proof_count": len(proofs),
        "progress": {
            "step": step,
            "name": PROGRESS_STEPS[step - 1],
            "steps": PROGRESS_STEPS,
        },
        "has_template": record.template_text is not None,
        "pdf_url": record.pdf_url,
        "next_step": _next_step_message(len(proofs), pdf_ready),
    }
    if not proofs:
        result["warning"] = NO_PROOF_WARNING
    return result


@tool
def add_dispute_evidence(
    dispute_id: str,
    file_paths: list[str],
    evidence_type: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Upload proof files to an existing dispute and attach them as one proof bundle.

    Files are stored under the dispute's folder in selection order. The first
    stored file becomes the primary proof; files that fail are reported and
    left out.

    Args:
        dispute_id: The dispute to add proof to
        file_paths: Local files to upload
        evidence_type: One of receipt, bank_statement, chat_screenshot, tracking_doc, other
        description: Optional note about the files

    Returns:
        Dictionary with the per-file upload results and the new proof bundle ID
    """
    user_id = get_current_user_id()
    if not user_id:
        return _not_logged_in()
    if evidence_type is not None and evidence_type not in EVIDENCE_TYPES:
        return {
            "success": False,
            "message": f"Unknown evidence type {evidence_type!r}; "
                       f"expected one of {', '.join(EVIDENCE_TYPES)}",
        }

    storage = get_storage()
    try:
        record = storage.get_dispute(dispute_id, user_id)
    except StorageError as e:
        return _storage_failure(e)
    if record is None:
        return _not_found(dispute_id)

    audit_logger = _audit_logger(user_id)
    files, unreadable = read_evidence_files(file_paths)
    outcomes = EvidenceCollector(storage, audit_logger=audit_logger).collect(files, folder=record.id)
    outcomes += unreadable
    uploads = [_upload_summary(o) for o in outcomes]
    stored = [o.item for o in outcomes if o.ok]

    if not stored:
        return {"success": False, "uploads": uploads, "message": "No proof file could be uploaded."}

    bundle = proof_bundle_payload(
        user_id, record.id, stored, evidence_type, (description or "").strip() or None
    )
    try:
        bundle_id = storage.insert_proof_bundle(bundle)
    except StorageError as e:
        logger.warning(f"Proof bundle for dispute {record.id} not saved: {e}")
        audit_logger.log_proof_bundle_failed(record.id, str(e))
        return {
            "success": False,
            "uploads": uploads,
            "message": f"Files were uploaded but could not be attached to the dispute: {e}",
        }

    message = f"Added {len(stored)} proof file(s) to dispute {dispute_id}."
    failed = [o.name for o in outcomes if not o.ok]
    if failed:
        message += f" Could not upload: {', '.join(failed)}."
    return {
        "success": True,
        "dispute_id": dispute_id,
        "proof_bundle_id": bundle_id,
        "uploads": uploads,
        "message": message,
    }


def _set_archived(dispute_id: str, archived: bool) -> dict[str, Any]:
    user_id = get_current_user_id()
    if not user_id:
        return _not_logged_in()

    storage = get_storage()
    try:
        updated = storage.update_dispute(dispute_id, user_id, {"archived": archived})
    except StorageError as e:
        return _storage_failure(e)
    if not updated:
        return _not_found(dispute_id)

    action = "archived" if archived else "restored"
    result = {"success": True, "dispute_id": dispute_id, "message": f"Dispute {dispute_id} {action}."}
    warning = _record_action(storage, dispute_id, user_id, action)
    if warning:
        result["warning"] = warning
    return result


@tool
def archive_dispute(dispute_id: str) -> dict[str, Any]:
    """Move a dispute out of the active list.

    Args:
        dispute_id: The dispute ID to archive
    """
    return _set_archived(dispute_id, True)


@tool
def restore_dispute(dispute_id: str) -> dict[str, Any]:
    """Bring an archived dispute back to the active list.

    Args:
        dispute_id: The dispute ID to restore
    """
    return _set_archived(dispute_id, False)


@tool
def delete_dispute(dispute_id: str) -> dict[str, Any]:
    """Delete a dispute that has not been submitted to the platform yet.

    Args:
        dispute_id: The dispute ID to delete
    """
    user_id = get_current_user_id()
    if not user_id:
        return _not_logged_in()

    storage = get_storage()
    try:
        record = storage.get_dispute(dispute_id, user_id)
        if record is None:
            return _not_found(dispute_id)
        if record.used_in_contest:
            return {
                "success": False,
                "message": "Dispute already submitted. Cannot delete.",
            }
        deleted = storage.delete_dispute(dispute_id, user_id)
    except StorageError as e:
        return _storage_failure(e)
    if not deleted:
        return _not_found(dispute_id)

    result = {"success": True, "dispute_id": dispute_id, "message": f"Dispute {dispute_id} deleted."}
    warning = _record_action(storage, dispute_id, user_id, "deleted")
    if warning:
        result["warning"] = warning
    return result
