"""Input sanitization for chat messages."""

import re
from typing import NamedTuple

from disputai.utils.logging import AuditLogger

MAX_INPUT_LENGTH = 5000


class SanitizationResult(NamedTuple):
    """Result of input sanitization."""
    text: str
    was_modified: bool
    warnings: list[str]


# Prompt injection attempts, and users trying to make the assistant fill fields for them
SUSPICIOUS_PATTERNS = [
    (r'ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|rules?)', "instruction_override"),
    (r'disregard\s+(all\s+)?(previous|above|prior)', "instruction_override"),
    (r'forget\s+(everything|all)', "instruction_override"),
    (r'(show|print|display|reveal|output)\s+(me\s+)?(your\s+)?(system\s+)?prompt', "prompt_extraction"),
    (r'what\s+(are|is)\s+your\s+(instructions?|prompt)', "prompt_extraction"),
    (r'you\s+are\s+now\s+a', "role_manipulation"),
    (r'pretend\s+(to\s+be|you\'re)', "role_manipulation"),
    (r'call\s+(the\s+)?submit_dispute', "function_forcing"),
    (r'```\s*(system|assistant|user)\s*\n', "delimiter_injection"),
    (r'<\|?(system|assistant|user)\|?>', "delimiter_injection"),
]

_COMPILED_PATTERNS = [(re.compile(p, re.IGNORECASE), category) for p, category in SUSPICIOUS_PATTERNS]

# NUL and ESC break terminal rendering and JSONL audit lines
DANGEROUS_CHARS = ("\x00", "\x1b")


def sanitize_input(
    text: str,
    audit_logger: AuditLogger | None = None,
) -> SanitizationResult:
    """Sanitize a chat message before it enters the transcript.

    Removes control characters, flags injection patterns, collapses runs
    of spaces and truncates overly long input.

    Args:
        text: The user input to sanitize
        audit_logger: Receives security events when given

    Returns:
        SanitizationResult with sanitized text and warnings
    """
    warnings = []
    was_modified = False

    sanitized = text
    for char in DANGEROUS_CHARS:
        if char in sanitized:
            sanitized = sanitized.replace(char, "")
            was_modified = True
            warnings.append(f"Removed dangerous character: {repr(char)}")

    flagged = []
    for pattern, category in _COMPILED_PATTERNS:
        if category not in flagged and pattern.search(sanitized):
            flagged.append(category)
            warnings.append(f"Suspicious pattern detected: {category}")
            if audit_logger:
                audit_logger.log_security_event(
                    event_type=f"suspicious_input_{category}",
                    details="Pattern matched in user input",
                )

    normalized = re.sub(r' {3,}', '  ', sanitized)
    if normalized != sanitized:
        sanitized = normalized
        was_modified = True

    if len(sanitized) > MAX_INPUT_LENGTH:
        original_length = len(sanitized)
        sanitized = sanitized[:MAX_INPUT_LENGTH] + "... [truncated]"
        was_modified = True
        warnings.append(f"Input truncated from {original_length} to {MAX_INPUT_LENGTH} characters")
        if audit_logger:
            audit_logger.log_security_event(
                event_type="input_truncated",
                details=f"Input was {original_length} chars, truncated to {MAX_INPUT_LENGTH}",
                severity="info",
            )

    return SanitizationResult(text=sanitized, was_modified=was_modified, warnings=warnings)
