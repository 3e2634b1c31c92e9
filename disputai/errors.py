"""Exception types shared across the package."""


class DisputaiError(Exception):
    """Base class for all errors raised by disputai."""
    pass


class ExtractionError(DisputaiError):
    """Raised when the chat model call fails or returns an unusable payload."""
    pass


class MalformedCallError(ExtractionError):
    """Raised when a function call payload cannot be decoded or is not recognised."""
    pass


class IdentityMissingError(DisputaiError):
    """Raised when a write is attempted without an authenticated user."""
    pass


class StorageError(DisputaiError):
    """Raised by storage backends when a read, write or upload fails."""
    pass


class PersistenceError(DisputaiError):
    """Raised when the dispute record could not be created."""
    pass


class WizardStateError(DisputaiError):
    """Raised when an action is not allowed in the wizard's current state."""
    pass


class WizardBusyError(WizardStateError):
    """Raised when a second model round-trip is started while one is in flight."""
    pass


class PdfExportError(DisputaiError):
    """Raised when the document conversion service does not produce a PDF."""
    pass
