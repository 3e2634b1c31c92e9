"""Utilities module - Logging, PII masking, session, model setup."""

from .pii import mask_pii, hash_user_id
from .logging import get_logger, AuditLogger
from .session import get_current_user_id, set_current_user_id, reset_current_user_id

__all__ = [
    "mask_pii",
    "hash_user_id",
    "get_logger",
    "AuditLogger",
    "get_current_user_id",
    "set_current_user_id",
    "reset_current_user_id",
]
