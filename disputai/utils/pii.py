"""PII masking for audit entries.

Dispute transcripts routinely contain names, e-mail addresses, order and
card numbers. Nothing that reaches the audit log should carry them in
clear text, so every entry passes through :func:`mask_pii` first.
"""

import re
import hashlib
from typing import Optional

from presidio_analyzer import AnalyzerEngine, RecognizerResult
from presidio_anonymizer import AnonymizerEngine
from presidio_anonymizer.entities import OperatorConfig


_analyzer: Optional[AnalyzerEngine] = None
_anonymizer: Optional[AnonymizerEngine] = None


def _get_analyzer() -> AnalyzerEngine:
    global _analyzer
    if _analyzer is None:
        _analyzer = AnalyzerEngine()
    return _analyzer


def _get_anonymizer() -> AnonymizerEngine:
    global _anonymizer
    if _anonymizer is None:
        _anonymizer = AnonymizerEngine()
    return _anonymizer


# Entities Presidio should look for in dispute conversations
DISPUTE_ENTITIES = [
    "CREDIT_CARD",
    "IBAN_CODE",
    "US_BANK_NUMBER",
    "EMAIL_ADDRESS",
    "PHONE_NUMBER",
    "IP_ADDRESS",
    "PERSON",
]

# Ordered: card numbers must be masked before the generic digit-run rule
REGEX_RULES = [
    (re.compile(r'\b(?:\d{4}[-\s]?){3}\d{4}\b'), '[REDACTED_CREDIT_CARD]'),
    (re.compile(r'\b[A-Z]{2}\d{2}(?:\s?[A-Z0-9]{4}){2,7}(?:\s?[A-Z0-9]{1,4})?\b'), '[REDACTED_IBAN]'),
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[REDACTED_EMAIL]'),
    (re.compile(r'(?<!\w)(?:\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b'), '[REDACTED_PHONE]'),
    (re.compile(r'\b\d{9,17}\b'), '[REDACTED_ACCOUNT]'),
]


def hash_user_id(user_id: str) -> str:
    """Hash a user ID for audit logging."""
    return hashlib.sha256(user_id.encode()).hexdigest()[:12]


def _mask_pii_regex(text: str) -> str:
    for pattern, replacement in REGEX_RULES:
        text = pattern.sub(replacement, text)
    return text


def _mask_pii_presidio(text: str) -> str:
    results: list[RecognizerResult] = _get_analyzer().analyze(
        text=text,
        entities=DISPUTE_ENTITIES,
        language="en",
    )
    if not results:
        return text

    operators = {
        entity: OperatorConfig("replace", {"new_value": f"[REDACTED_{entity}]"})
        for entity in DISPUTE_ENTITIES
    }
    operators["DEFAULT"] = OperatorConfig("replace", {"new_value": "[REDACTED]"})

    return _get_anonymizer().anonymize(
        text=text,
        analyzer_results=results,
        operators=operators,
    ).text


def mask_pii(text: str, use_presidio: bool = True) -> str:
    """Mask PII in text.

    Regex rules run first; Presidio's NLP recognizers then catch what the
    rules cannot (person names, loosely formatted numbers).

    Args:
        text: Text to redact.
        use_presidio: Also run Presidio after the regex pass.

    Returns:
        Redacted text. Empty input is returned unchanged.
    """
    if not text:
        return text

    masked = _mask_pii_regex(text)
    if use_presidio:
        masked = _mask_pii_presidio(masked)
    return masked


SENSITIVE_KEYS = {
    "email", "phone", "password", "api_key", "token", "access_token",
    "secret", "card_number", "user_contact_desc",
}


def redact_for_logging(data: dict) -> dict:
    """Redact sensitive fields from a dictionary for logging."""
    redacted = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS:
            redacted[key] = "[REDACTED]"
        elif isinstance(value, str):
            redacted[key] = mask_pii(value, use_presidio=False)
        elif isinstance(value, dict):
            redacted[key] = redact_for_logging(value)
        elif isinstance(value, list):
            redacted[key] = [
                redact_for_logging(v) if isinstance(v, dict) else v
                for v in value
            ]
        else:
            redacted[key] = value
    return redacted
