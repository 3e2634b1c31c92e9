"""Session context for the authenticated user."""

import contextvars
import re
from typing import Optional

# Context variable for the current user ID
_current_user_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "current_user_id", default=None
)


def validate_user_id(user_id: str) -> bool:
    """Check that a user ID looks like an auth provider identifier."""
    return bool(re.match(r'^[a-zA-Z0-9_-]+$', user_id))


def get_current_user_id() -> str | None:
    """Get the current user ID, or None when nobody is logged in."""
    return _current_user_id.get()


def set_current_user_id(user_id: str) -> contextvars.Token[Optional[str]]:
    """Set the current user ID in session context.

    Args:
        user_id: The user ID to set

    Returns:
        Token that can be used to reset the context

    Raises:
        ValueError: If the ID contains characters an auth provider never issues
    """
    if not validate_user_id(user_id):
        raise ValueError(f"Invalid user ID: {user_id!r}")
    return _current_user_id.set(user_id)


def reset_current_user_id(token: contextvars.Token[Optional[str]]) -> None:
    """Reset the user ID context to its previous value."""
    _current_user_id.reset(token)
