"""Tools module - LangChain tools for intake and dispute management."""

from .intake import INTAKE_TOOLS, request_evidence, submit_dispute
from .disputes import (
    add_dispute_evidence,
    archive_dispute,
    delete_dispute,
    get_dispute_detail,
    list_user_disputes,
    restore_dispute,
)
from .letters import export_dispute_pdf, generate_dispute_letter

__all__ = [
    "INTAKE_TOOLS",
    "request_evidence",
    "submit_dispute",
    "add_dispute_evidence",
    "archive_dispute",
    "delete_dispute",
    "get_dispute_detail",
    "list_user_disputes",
    "restore_dispute",
    "export_dispute_pdf",
    "generate_dispute_letter",
]
