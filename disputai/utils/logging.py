"""Structured audit logging with PII redaction."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from disputai.utils.pii import mask_pii, hash_user_id, redact_for_logging


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level.upper()))
    return logger


def _preview(text: str, use_presidio: bool, limit: int = 200) -> str:
    masked = mask_pii(text[:limit], use_presidio=use_presidio)
    return masked + "..." if len(text) > limit else masked


class AuditLogger:
    """Audit trail for one user's intake session and dispute actions."""

    def __init__(
        self,
        log_dir: Path | None = None,
        user_id: str | None = None,
        use_presidio: bool = True,
    ):
        self.log_dir = log_dir or Path("logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.user_id = user_id
        self.user_hash = hash_user_id(user_id) if user_id else "anonymous"
        self.use_presidio = use_presidio
        self._logger = get_logger(f"audit.{self.user_hash}")

    def _get_log_file(self) -> Path:
        date_str = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"audit_{date_str}.jsonl"

    def _write_entry(self, entry: dict):
        entry["timestamp"] = datetime.now().isoformat()
        entry["user_hash"] = self.user_hash

        with open(self._get_log_file(), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")

    def log_user_input(self, message: str):
        self._write_entry({
            "event": "user_input",
            "message": mask_pii(message, use_presidio=self.use_presidio),
        })
        self._logger.info(f"User input received (length: {len(message)})")

    def log_llm_response(self, response: str, model: str, signal: str = "reply"):
        """Log what the chat model returned and which signal it mapped to."""
        self._write_entry({
            "event": "llm_response",
            "model": model,
            "signal": signal,
            "response_length": len(response),
            "response_preview": _preview(response, self.use_presidio),
        })
        self._logger.debug(f"LLM response from {model} ({signal})")

    def log_extraction_failed(self, error: str):
        self._write_entry({"event": "extraction_failed", "error": error})
        self._logger.warning(f"Extraction failed: {error}")

    def log_evidence_upload(self, name: str, url: str | None, error: str | None = None):
        """Log one evidence file; ``url`` is None when the upload failed."""
        self._write_entry({
            "event": "evidence_upload",
            "file_name": mask_pii(name, use_presidio=False),
            "stored": url is not None,
            "error": error,
        })
        if error:
            self._logger.warning(f"Evidence upload failed: {error}")
        else:
            self._logger.info("Evidence file stored")

    def log_submission_rejected(self, missing: list[str], invalid: dict[str, str]):
        self._write_entry({
            "event": "submission_rejected",
            "missing": missing,
            "invalid": invalid,
        })
        self._logger.info(f"Submission rejected: missing={missing} invalid={list(invalid)}")

    def log_dispute_created(
        self,
        dispute_id: str,
        fields: dict[str, Any],
        evidence_count: int,
    ):
        self._write_entry({
            "event": "dispute_created",
            "dispute_id": dispute_id,
            "fields": redact_for_logging(fields),
            "evidence_count": evidence_count,
        })
        self._logger.info(f"Dispute created: {dispute_id} ({evidence_count} evidence file(s))")

    def log_proof_bundle_failed(self, dispute_id: str, error: str):
        self._write_entry({
            "event": "proof_bundle_failed",
            "dispute_id": dispute_id,
            "error": error,
        })
        self._logger.warning(f"Proof bundle not saved for dispute {dispute_id}: {error}")

    def log_dispute_action(self, dispute_id: str, action: str):
        """Log archive, restore and delete actions."""
        self._write_entry({
            "event": "dispute_action",
            "dispute_id": dispute_id,
            "action": action,
        })
        self._logger.info(f"Dispute {dispute_id} {action}")

    def log_security_event(
        self,
        event_type: str,
        details: str,
        severity: str = "warning",
    ):
        self._write_entry({
            "event": "security",
            "event_type": event_type,
            "details": mask_pii(details, use_presidio=False),
            "severity": severity,
        })
        log_method = getattr(self._logger, severity.lower(), self._logger.warning)
        log_method(f"Security event: {event_type}")
