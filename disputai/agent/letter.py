"""Dispute letter drafting."""

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from disputai.agent.prompts import LETTER_SYSTEM_PROMPT
from disputai.config import settings
from disputai.errors import ExtractionError
from disputai.models.dispute import DisputeRecord
from disputai.utils.logging import get_logger
from disputai.utils.risk import calculate_risk

logger = get_logger("letter", settings.log_level)

HIGH_RISK_THRESHOLD = 70


class LetterDraft(BaseModel):
    template: str
    confidence: float
    risk: int


def _case_summary(record: DisputeRecord) -> str:
    lines = [
        f"Platform: {record.platform_name}",
        f"Purchase date: {record.purchase_date}",
        f"Amount: {record.purchase_amount} {record.currency}",
        f"Problem type: {record.problem_type}",
    ]
    if record.problem_subtype:
        lines.append(f"Problem subtype: {record.problem_subtype}")
    if record.tracking_info:
        lines.append(f"Tracking: {record.tracking_info}")
    if record.service_usage:
        lines.append(f"Service used: {record.service_usage}")
    if record.user_contact_platform == "yes" and record.user_contact_desc:
        lines.append(f"Previous contact with the platform: {record.user_contact_desc}")
    lines.append(f"What happened: {record.description}")
    return "\n".join(lines)


def draft_letter(record: DisputeRecord, llm) -> LetterDraft:
    """Ask the chat model for a formal dispute letter for ``record``.

    Confidence drops to 0.6 for high-risk descriptions.

    Raises:
        ExtractionError: If the model call fails or returns nothing
    """
    risk = calculate_risk(record.description or "")
    jurisdiction = record.country or record.jurisdiction_flag
    messages = [
        SystemMessage(content=LETTER_SYSTEM_PROMPT.format(jurisdiction=jurisdiction)),
        HumanMessage(content=_case_summary(record)),
    ]
    try:
        response = llm.invoke(messages)
    except Exception as e:
        raise ExtractionError(f"Letter generation failed: {e}") from e

    text = response.content if isinstance(response.content, str) else ""
    if not text.strip():
        raise ExtractionError("Letter generation returned no text")

    confidence = 0.6 if risk > HIGH_RISK_THRESHOLD else 0.9
    logger.info(f"Drafted letter for dispute {record.id} (risk={risk}, confidence={confidence})")
    return LetterDraft(template=text.strip(), confidence=confidence, risk=risk)
