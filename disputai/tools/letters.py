"""Letter generation and PDF export for stored disputes."""

from typing import Any

from langchain_core.tools import tool

from disputai.agent.letter import draft_letter
from disputai.config import settings
from disputai.data.storage import get_storage
from disputai.errors import ExtractionError, PdfExportError, StorageError
from disputai.utils.get_model import create_llm, resolve_provider
from disputai.utils.logging import get_logger
from disputai.utils.pdf import CloudConvertClient
from disputai.utils.session import get_current_user_id

logger = get_logger("letters", settings.log_level)


def letter_model():
    """Chat model for letter drafting, at the letter temperature."""
    provider, api_key, model = resolve_provider()
    return create_llm(provider, api_key, model, temperature=settings.letter_temperature)


def pdf_client() -> CloudConvertClient:
    return CloudConvertClient()


@tool
def generate_dispute_letter(dispute_id: str) -> dict[str, Any]:
    """Draft a dispute letter and store it as the dispute's template text.

    Args:
        dispute_id: The dispute to write a letter for

    Returns:
        Dictionary with the letter, its confidence and the risk score
    """
    user_id = get_current_user_id()
    if not user_id:
        return {"success": False, "message": "Please log in to generate a letter."}

    storage = get_storage()
    try:
        record = storage.get_dispute(dispute_id, user_id)
    except StorageError as e:
        logger.error(f"Loading dispute {dispute_id} failed: {e}")
        return {"success": False, "message": f"Could not load dispute: {e}"}
    if record is None:
        return {"success": False, "message": f"Dispute {dispute_id} not found."}

    try:
        llm = letter_model()
    except ValueError as e:
        return {"success": False, "message": str(e)}

    try:
        draft = draft_letter(record, llm)
    except ExtractionError as e:
        logger.error(f"Letter for dispute {dispute_id} failed: {e}")
        return {"success": False, "message": str(e)}

    try:
        storage.update_dispute(dispute_id, user_id, {"template_text": draft.template})
    except StorageError as e:
        logger.error(f"Saving letter for dispute {dispute_id} failed: {e}")
        return {"success": False, "template": draft.template, "message": f"Letter not saved: {e}"}

    return {
        "success": True,
        "dispute_id": dispute_id,
        "template": draft.template,
        "confidence": draft.confidence,
        "risk": draft.risk,
    }


@tool
def export_dispute_pdf(dispute_id: str) -> dict[str, Any]:
    """Convert the dispute's letter to ``Disput_<id>.pdf`` in the exports directory.

    Args:
        dispute_id: The dispute whose letter is exported

    Returns:
        Dictionary with the PDF location or an error message
    """
    user_id = get_current_user_id()
    if not user_id:
        return {"success": False, "message": "Please log in to export a PDF."}

    storage = get_storage()
    try:
        record = storage.get_dispute(dispute_id, user_id)
    except StorageError as e:
        logger.error(f"Loading dispute {dispute_id} failed: {e}")
        return {"success": False, "message": f"Could not load dispute: {e}"}
    if record is None:
        return {"success": False, "message": f"Dispute {dispute_id} not found."}
    if not record.template_text:
        return {"success": False, "message": "Generate the dispute letter before exporting a PDF."}

    try:
        pdf = pdf_client().convert_text_to_pdf(record.template_text, dispute_id)
    except PdfExportError as e:
        logger.error(f"PDF export for dispute {dispute_id} failed: {e}")
        return {"success": False, "message": f"PDF export failed: {e}"}

    target = settings.exports_dir / f"Disput_{dispute_id}.pdf"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(pdf)
    except OSError as e:
        logger.error(f"Writing {target} failed: {e}")
        return {"success": False, "message": f"Could not write {target.name}: {e}"}

    pdf_url = target.resolve().as_uri()
    try:
        storage.update_dispute(dispute_id, user_id, {"pdf_url": pdf_url})
    except StorageError as e:
        logger.error(f"Saving PDF location for dispute {dispute_id} failed: {e}")
        return {"success": False, "path": str(target), "message": f"PDF saved but not linked: {e}"}
    return {"success": True, "dispute_id": dispute_id, "pdf_url": pdf_url, "path": str(target)}
