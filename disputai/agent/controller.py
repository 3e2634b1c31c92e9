"""Dispute intake wizard: chat, evidence upload, confirmation and persistence.

One controller instance owns one session. Presentation layers (the CLI,
a modal, a paged form) call its methods and render the returned
WizardUpdate; none of them keeps wizard state of its own.
"""

from contextlib import contextmanager
from enum import Enum
from threading import Lock
from typing import Callable, Iterable

from pydantic import BaseModel, Field

from disputai.agent.evidence import EvidenceCollector
from disputai.agent.extractor import ConversationalExtractor
from disputai.agent.gateway import DisputeGateway
from disputai.agent.prompts import (
    DISPUTE_CREATED_MESSAGE,
    EVIDENCE_COMPLETE_MESSAGE,
    EVIDENCE_REQUEST_MESSAGE,
    EXTRACTION_ERROR_MESSAGE,
    LOGIN_REQUIRED_MESSAGE,
    OPENING_MESSAGE,
    PARSE_ERROR_MESSAGE,
    format_missing_fields,
    get_system_prompt,
)
from disputai.agent.schema import validate_fields
from disputai.agent.security import sanitize_input
from disputai.agent.transcript import Transcript
from disputai.config import settings
from disputai.data.storage import StorageBackend, get_storage
from disputai.errors import (
    ExtractionError,
    MalformedCallError,
    PersistenceError,
    WizardBusyError,
    WizardStateError,
)
from disputai.models.dispute import DisputeFields
from disputai.models.evidence import EVIDENCE_TYPES, EvidenceFile, EvidenceItem, UploadOutcome
from disputai.utils.get_model import Provider
from disputai.utils.logging import AuditLogger, get_logger
from disputai.utils.session import get_current_user_id

logger = get_logger("wizard", settings.log_level)

FALLBACK_REPLY = "I couldn't process your request."


class WizardState(str, Enum):
    CHATTING = "chatting"
    AWAITING_EVIDENCE = "awaiting_evidence"
    COMPLETED = "completed"
    FAILED = "failed"


class Redirect(BaseModel):
    """Where the presentation layer should go next, and after how long."""

    path: str
    delay_seconds: float


class WizardUpdate(BaseModel):
    """What one user action produced.

    ``outcome`` is the result of this step and may be FAILED; ``state`` is
    where the controller rests afterwards, which is never FAILED.
    """

    outcome: WizardState
    state: WizardState
    messages: list[str] = Field(default_factory=list, description="Assistant messages added")
    uploads: list[UploadOutcome] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    invalid_fields: dict[str, str] = Field(default_factory=dict)
    dispute_id: str | None = None
    proof_bundle_error: str | None = None
    redirect: Redirect | None = None
    error: str | None = None

    @property
    def failed_uploads(self) -> list[UploadOutcome]:
        return [u for u in self.uploads if not u.ok]


class WizardController:
    """State machine behind every dispute intake view."""

    def __init__(
        self,
        extractor: ConversationalExtractor,
        collector: EvidenceCollector,
        gateway: DisputeGateway,
        audit_logger: AuditLogger | None = None,
        user_id_provider: Callable[[], str | None] = get_current_user_id,
        system_prompt: str | None = None,
    ):
        self.extractor = extractor
        self.collector = collector
        self.gateway = gateway
        self.audit_logger = audit_logger
        self._user_id_provider = user_id_provider

        self.transcript = Transcript(system_prompt or get_system_prompt(), OPENING_MESSAGE)
        self.state = WizardState.CHATTING
        self.evidence: list[EvidenceItem] = []
        self.evidence_type: str | None = None
        self.evidence_description: str | None = None
        self.fields: DisputeFields | None = None
        self.dispute_id: str | None = None
        self._lock = Lock()

    @classmethod
    def from_settings(
        cls,
        provider: Provider | None = None,
        storage: StorageBackend | None = None,
    ) -> "WizardController":
        """Wire a controller to the configured model and storage backend."""
        storage = storage or get_storage()
        audit_logger = AuditLogger(
            log_dir=settings.audit_log_dir,
            user_id=get_current_user_id(),
            use_presidio=settings.audit_use_presidio,
        )
        return cls(
            extractor=ConversationalExtractor.from_settings(provider),
            collector=EvidenceCollector(storage, audit_logger=audit_logger),
            gateway=DisputeGateway(storage, audit_logger=audit_logger),
            audit_logger=audit_logger,
        )

    @property
    def busy(self) -> bool:
        """True while a model round-trip is in flight; the send button is disabled."""
        return self._lock.locked()

    def get_history(self) -> list[dict]:
        return self.transcript.to_dicts()

    # User actions

    def send_message(self, text: str) -> WizardUpdate:
        """Add a user message and let the model answer it."""
        self._require(WizardState.CHATTING)
        if not text.strip():
            return WizardUpdate(outcome=self.state, state=self.state)

        sanitized = sanitize_input(text, self.audit_logger)
        if sanitized.warnings:
            logger.warning(f"Input sanitization warnings: {sanitized.warnings}")
        if self.audit_logger:
            self.audit_logger.log_user_input(sanitized.text)

        with self._round_trip():
            start = len(self.transcript)
            self.transcript.add_user(sanitized.text)
            return self._advance(start)

    def add_evidence(self, files: Iterable[EvidenceFile]) -> WizardUpdate:
        """Upload a batch of selected files, in order.

        Stored files join the session evidence list; failed ones are only
        reported in ``WizardUpdate.uploads``.
        """
        self._require(WizardState.AWAITING_EVIDENCE)
        outcomes = self.collector.collect(files)
        self.evidence.extend(o.item for o in outcomes if o.ok)

        failed = [o.name for o in outcomes if not o.ok]
        return WizardUpdate(
            outcome=self.state,
            state=self.state,
            uploads=outcomes,
            error=f"Could not upload: {', '.join(failed)}" if failed else None,
        )

    def set_evidence_details(
        self,
        evidence_type: str | None = None,
        description: str | None = None,
    ) -> None:
        """Record the evidence classification and the user's notes on it."""
        self._require(WizardState.AWAITING_EVIDENCE)
        if evidence_type is not None:
            if evidence_type not in EVIDENCE_TYPES:
                raise ValueError(
                    f"Unknown evidence type {evidence_type!r}; "
                    f"expected one of {', '.join(EVIDENCE_TYPES)}"
                )
            self.evidence_type = evidence_type
        if description is not None:
            self.evidence_description = description.strip() or None

    def confirm_evidence(self) -> WizardUpdate:
        """Finish the upload step and hand the conversation back to the model."""
        self._require(WizardState.AWAITING_EVIDENCE)
        with self._round_trip():
            start = len(self.transcript)
            self.state = WizardState.CHATTING
            self.transcript.add_user(EVIDENCE_COMPLETE_MESSAGE)
            return self._advance(start)

    # Transitions

    def _require(self, *states: WizardState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WizardStateError(f"Action not allowed in state {self.state.value} (needs {allowed})")

    @contextmanager
    def _round_trip(self):
        if not self._lock.acquire(blocking=False):
            raise WizardBusyError("A reply is still being generated.")
        try:
            yield
        finally:
            self._lock.release()

    def _update(self, outcome: WizardState, start: int, **kwargs) -> WizardUpdate:
        added = [
            m.content for m in self.transcript.messages[start:]
            if m.type == "ai"
        ]
        return WizardUpdate(outcome=outcome, state=self.state, messages=added, **kwargs)

    def _advance(self, start: int) -> WizardUpdate:
        try:
            extraction, _ = self.extractor.extract(self.transcript.messages)
        except MalformedCallError as e:
            return self._fail(start, str(e), PARSE_ERROR_MESSAGE)
        except ExtractionError as e:
            return self._fail(start, str(e), EXTRACTION_ERROR_MESSAGE)

        if self.audit_logger:
            self.audit_logger.log_llm_response(
                extraction.text, model=self.extractor.model_name, signal=extraction.kind
            )

        if extraction.kind == "request_evidence":
            self.transcript.add_assistant(EVIDENCE_REQUEST_MESSAGE)
            self.state = WizardState.AWAITING_EVIDENCE
            return self._update(self.state, start)

        if extraction.kind == "submit":
            return self._submit(start, extraction.fields)

        self.transcript.add_assistant(extraction.text or FALLBACK_REPLY)
        return self._update(self.state, start)

    def _submit(self, start: int, candidate: dict) -> WizardUpdate:
        check = validate_fields(candidate)
        if not check.complete:
            if self.audit_logger:
                self.audit_logger.log_submission_rejected(check.missing, check.invalid)
            self.transcript.add_assistant(format_missing_fields(check.missing, check.invalid))
            return self._update(
                self.state, start,
                missing_fields=check.missing,
                invalid_fields=check.invalid,
            )

        user_id = self._user_id_provider()
        if not user_id:
            self.transcript.add_assistant(LOGIN_REQUIRED_MESSAGE)
            return self._update(self.state, start, error="identity_missing")

        try:
            result = self.gateway.submit(
                user_id,
                check.fields,
                evidence=self.evidence,
                evidence_type=self.evidence_type,
                evidence_description=self.evidence_description,
            )
        except PersistenceError as e:
            return self._fail(start, str(e), f"❌ {e}")

        self.fields = check.fields
        self.dispute_id = result.dispute_id
        self.state = WizardState.COMPLETED
        self.transcript.add_assistant(DISPUTE_CREATED_MESSAGE)
        logger.info(f"Wizard completed with dispute {result.dispute_id}")

        return self._update(
            WizardState.COMPLETED, start,
            dispute_id=result.dispute_id,
            proof_bundle_error=result.proof_bundle_error,
            redirect=Redirect(
                path=f"/cases/{result.dispute_id}",
                delay_seconds=settings.wizard_config.redirect_delay_seconds,
            ),
        )

    def _fail(self, start: int, error: str, message: str) -> WizardUpdate:
        logger.error(f"Wizard step failed: {error}")
        if self.audit_logger:
            self.audit_logger.log_extraction_failed(error)
        self.state = WizardState.CHATTING
        self.transcript.add_assistant(message)
        return self._update(WizardState.FAILED, start, error=error)
