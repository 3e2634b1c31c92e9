"""Tests for the intake wizard controller."""

import json

import httpx
import pytest

from disputai.agent.controller import WizardController, WizardState
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
)
from disputai.config import settings
from disputai.data.supabase import SupabaseStorage
from disputai.errors import StorageError, WizardBusyError, WizardStateError
from disputai.models.evidence import EvidenceFile
from disputai.tools.intake import REQUEST_EVIDENCE, SUBMIT_DISPUTE
from disputai.utils.logging import AuditLogger
from langchain_core.messages import AIMessage

from tests.conftest import FakeChatModel, call, reply
from tests.test_evidence import FailingStorage, ticking_clock


class BrokenDisputeStorage:
    """Uploads work, dispute writes fail."""

    def __init__(self, inner):
        self.inner = inner

    def upload_object(self, *args, **kwargs):
        return self.inner.upload_object(*args, **kwargs)

    def insert_dispute(self, payload):
        raise StorageError("database unavailable")


class BrokenBundleStorage(BrokenDisputeStorage):
    """Dispute writes work, proof bundle writes fail."""

    def insert_dispute(self, payload):
        return self.inner.insert_dispute(payload)

    def insert_proof_bundle(self, payload):
        raise StorageError("proof_bundle insert denied")


@pytest.fixture
def model():
    return FakeChatModel()


@pytest.fixture
def identity():
    """Mutable identity so tests can log in and out mid-session."""
    return {"user_id": "user_001"}


@pytest.fixture
def make_controller(storage, model, identity):
    def _make(backend=None, audit_logger=None):
        backend = backend or storage
        return WizardController(
            extractor=ConversationalExtractor(model, model_name="fake-model"),
            collector=EvidenceCollector(backend, audit_logger=audit_logger, clock=ticking_clock()),
            gateway=DisputeGateway(backend, audit_logger=audit_logger),
            audit_logger=audit_logger,
            user_id_provider=lambda: identity["user_id"],
            system_prompt="You collect dispute details.",
        )
    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()


def proof_files():
    return [
        EvidenceFile("receipt.pdf", b"%PDF", "application/pdf"),
        EvidenceFile("chat.png", b"\x89PNG", "image/png"),
    ]


class TestInitialState:
    def test_transcript_seeded(self, controller):
        messages = controller.transcript.messages
        assert messages[0].type == "system"
        assert messages[0].content == "You collect dispute details."
        assert messages[1].content == OPENING_MESSAGE
        assert controller.state == WizardState.CHATTING
        assert controller.evidence == []

    def test_history_hides_system_prompt(self, controller):
        assert controller.get_history() == [{"role": "assistant", "content": OPENING_MESSAGE}]


class TestChatting:
    def test_reply_appended(self, controller, model):
        model.queue(reply("Which platform did you buy from?"))

        update = controller.send_message("My package never arrived")

        assert update.outcome == WizardState.CHATTING
        assert update.state == WizardState.CHATTING
        assert update.messages == ["Which platform did you buy from?"]
        assert [m["role"] for m in controller.get_history()] == ["assistant", "user", "assistant"]

    def test_model_sees_whole_transcript(self, controller, model):
        model.queue(reply("First answer"), reply("Second answer"))
        controller.send_message("one")
        controller.send_message("two")

        sent = model.calls[-1]
        assert [m.content for m in sent[1:]] == [OPENING_MESSAGE, "one", "First answer", "two"]

    def test_empty_message_is_ignored(self, controller, model):
        update = controller.send_message("   ")
        assert update.messages == []
        assert model.calls == []
        assert len(controller.transcript) == 2

    def test_input_sanitized(self, controller, model):
        model.queue(reply("ok"))
        controller.send_message("Amazon\x00 order")
        assert model.calls[0][-1].content == "Amazon order"

    def test_empty_reply_gets_fallback_text(self, controller, model):
        model.queue(AIMessage(content=""))
        update = controller.send_message("hello")
        assert update.messages == ["I couldn't process your request."]


class TestEvidenceFlow:
    def test_request_evidence(self, controller, model):
        model.queue(call(REQUEST_EVIDENCE))

        update = controller.send_message("Here is everything")

        assert update.state == WizardState.AWAITING_EVIDENCE
        assert update.messages == [EVIDENCE_REQUEST_MESSAGE]
        assert controller.state == WizardState.AWAITING_EVIDENCE

    def test_full_flow_with_evidence(self, controller, model, storage, complete_fields):
        model.queue(
            reply("When did you buy it?"),
            call(REQUEST_EVIDENCE),
            call(SUBMIT_DISPUTE, complete_fields),
        )
        controller.send_message("Amazon never delivered my order")
        controller.send_message("March 1st 2024, 49.99 USD")

        uploads = controller.add_evidence(proof_files())
        assert [o.ok for o in uploads.uploads] == [True, True]
        controller.set_evidence_details(evidence_type="receipt", description="Invoice and support chat")

        update = controller.confirm_evidence()

        assert update.outcome == WizardState.COMPLETED
        assert update.state == WizardState.COMPLETED
        assert update.messages == [DISPUTE_CREATED_MESSAGE]
        assert update.redirect.path == f"/cases/{update.dispute_id}"
        assert update.redirect.delay_seconds == settings.wizard_config.redirect_delay_seconds

        # The confirmation note is what the model answered to
        assert model.calls[-1][-1].content == EVIDENCE_COMPLETE_MESSAGE

        record = storage.get_dispute(update.dispute_id, "user_001")
        assert record.user_confirmed_input is True
        assert record.currency == "USD"

        bundle = storage.get_proof_bundles(update.dispute_id, "user_001")[0]
        assert bundle.receipt_url == controller.evidence[0].url
        assert bundle.screenshot_urls == [controller.evidence[1].url]
        assert bundle.dispute_type == "receipt"
        assert bundle.user_description == "Invoice and support chat"

    def test_confirm_with_no_uploads(self, controller, model, storage, complete_fields):
        model.queue(call(REQUEST_EVIDENCE), call(SUBMIT_DISPUTE, complete_fields))
        controller.send_message("details")

        update = controller.confirm_evidence()

        assert update.outcome == WizardState.COMPLETED
        assert storage.get_proof_bundles(update.dispute_id, "user_001") == []

    def test_failed_uploads_not_kept(self, make_controller, model, storage):
        controller = make_controller(backend=FailingStorage(storage, {"chat.png"}))
        model.queue(call(REQUEST_EVIDENCE))
        controller.send_message("details")

        update = controller.add_evidence(proof_files())

        assert [o.ok for o in update.uploads] == [True, False]
        assert [o.name for o in update.failed_uploads] == ["chat.png"]
        assert "chat.png" in update.error
        assert [item.name for item in controller.evidence] == ["receipt.pdf"]
        assert controller.state == WizardState.AWAITING_EVIDENCE

    def test_failed_upload_left_out_of_bundle(self, make_controller, model, storage, complete_fields):
        controller = make_controller(backend=FailingStorage(storage, {"receipt.pdf"}))
        model.queue(call(REQUEST_EVIDENCE), call(SUBMIT_DISPUTE, complete_fields))
        controller.send_message("details")
        controller.add_evidence(proof_files())

        update = controller.confirm_evidence()

        bundle = storage.get_proof_bundles(update.dispute_id, "user_001")[0]
        assert bundle.receipt_url == controller.evidence[0].url
        assert bundle.receipt_url.endswith("chat.png")
        assert bundle.screenshot_urls == []

    def test_uploads_accumulate_across_batches(self, controller, model):
        model.queue(call(REQUEST_EVIDENCE))
        controller.send_message("details")

        controller.add_evidence(proof_files()[:1])
        controller.add_evidence(proof_files()[1:])

        assert [item.name for item in controller.evidence] == ["receipt.pdf", "chat.png"]

    def test_unknown_evidence_type(self, controller, model):
        model.queue(call(REQUEST_EVIDENCE))
        controller.send_message("details")
        with pytest.raises(ValueError, match="Unknown evidence type"):
            controller.set_evidence_details(evidence_type="selfie")


class TestSubmission:
    def test_submit_without_evidence(self, controller, model, storage, complete_fields):
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("Yes, that is all correct")

        assert update.outcome == WizardState.COMPLETED
        assert controller.dispute_id == update.dispute_id
        assert controller.fields.platform_name == "Amazon"
        assert storage.get_proof_bundles(update.dispute_id, "user_001") == []

    def test_incomplete_submission_keeps_chatting(self, controller, model, storage, complete_fields):
        del complete_fields["training_permission"]
        complete_fields["purchase_amount"] = -3
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("That's all")

        assert update.outcome == WizardState.CHATTING
        assert update.missing_fields == ["training_permission"]
        assert "purchase_amount" in update.invalid_fields
        assert "training permission" in update.messages[0]
        assert update.dispute_id is None
        assert storage.list_disputes("user_001") == []

    def test_arguments_cannot_change_owner(self, controller, model, storage, complete_fields):
        complete_fields["user_id"] = "user_999"
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("confirm")

        assert storage.get_dispute(update.dispute_id, "user_001") is not None
        assert storage.list_disputes("user_999") == []

    def test_login_required(self, controller, model, storage, identity, complete_fields):
        identity["user_id"] = None
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("confirm")

        assert update.outcome == WizardState.CHATTING
        assert update.messages == [LOGIN_REQUIRED_MESSAGE]
        assert update.dispute_id is None
        assert storage.list_disputes("user_001") == []

        # Logging in and confirming again completes the dispute
        identity["user_id"] = "user_001"
        model.queue(call(SUBMIT_DISPUTE, complete_fields))
        update = controller.send_message("I logged in, please submit")
        assert update.outcome == WizardState.COMPLETED

    def test_dispute_write_failure(self, make_controller, model, storage, complete_fields):
        controller = make_controller(backend=BrokenDisputeStorage(storage))
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("confirm")

        assert update.outcome == WizardState.FAILED
        assert update.state == WizardState.CHATTING
        assert update.dispute_id is None
        assert update.redirect is None
        assert update.messages[0].startswith("❌")
        assert "database unavailable" in update.error

    def test_bundle_failure_still_completes(self, make_controller, model, storage, complete_fields):
        controller = make_controller(backend=BrokenBundleStorage(storage))
        model.queue(call(REQUEST_EVIDENCE), call(SUBMIT_DISPUTE, complete_fields))
        controller.send_message("details")
        controller.add_evidence(proof_files())

        update = controller.confirm_evidence()

        assert update.outcome == WizardState.COMPLETED
        assert "proof_bundle insert denied" in update.proof_bundle_error
        assert storage.get_dispute(update.dispute_id, "user_001") is not None

    def test_unreadable_backend_reply_fails_step(self, make_controller, model, complete_fields):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(201, content=b"")))
        backend = SupabaseStorage(url="https://proj.supabase.co", key="anon-key", client=client)
        controller = make_controller(backend=backend)
        model.queue(call(SUBMIT_DISPUTE, complete_fields))

        update = controller.send_message("confirm")

        assert update.outcome == WizardState.FAILED
        assert update.state == WizardState.CHATTING
        assert update.dispute_id is None
        assert "non-JSON body" in update.error


class TestFailures:
    def test_malformed_arguments(self, controller, model, storage):
        model.queue(AIMessage(
            content="",
            additional_kwargs={"function_call": {"name": SUBMIT_DISPUTE, "arguments": "{oops"}},
        ))

        update = controller.send_message("confirm")

        assert update.outcome == WizardState.FAILED
        assert update.state == WizardState.CHATTING
        assert update.messages == [PARSE_ERROR_MESSAGE]
        assert storage.list_disputes("user_001") == []

    def test_transport_failure(self, controller, model):
        model.queue(ConnectionError("network down"))

        update = controller.send_message("hello")

        assert update.outcome == WizardState.FAILED
        assert update.messages == [EXTRACTION_ERROR_MESSAGE]
        assert "network down" in update.error

    def test_session_continues_after_failure(self, controller, model):
        model.queue(ConnectionError("network down"), reply("Let's continue."))
        controller.send_message("hello")

        update = controller.send_message("hello again")

        assert update.outcome == WizardState.CHATTING
        assert update.messages == ["Let's continue."]

    def test_failure_during_confirmation_returns_to_chat(self, controller, model):
        model.queue(call(REQUEST_EVIDENCE), ConnectionError("timeout"))
        controller.send_message("details")

        update = controller.confirm_evidence()

        assert update.outcome == WizardState.FAILED
        assert controller.state == WizardState.CHATTING


class TestStateGuards:
    def test_upload_needs_evidence_request(self, controller):
        with pytest.raises(WizardStateError):
            controller.add_evidence(proof_files())
        with pytest.raises(WizardStateError):
            controller.confirm_evidence()

    def test_chat_blocked_while_awaiting_evidence(self, controller, model):
        model.queue(call(REQUEST_EVIDENCE))
        controller.send_message("details")
        with pytest.raises(WizardStateError):
            controller.send_message("more text")

    def test_completed_is_terminal(self, controller, model, complete_fields):
        model.queue(call(SUBMIT_DISPUTE, complete_fields))
        controller.send_message("confirm")

        with pytest.raises(WizardStateError):
            controller.send_message("one more thing")
        with pytest.raises(WizardStateError):
            controller.add_evidence(proof_files())

    def test_busy_while_waiting_for_model(self, controller, model):
        seen = []

        def reentrant(messages):
            seen.append(controller.busy)
            try:
                controller.send_message("second message")
            except WizardBusyError as e:
                seen.append(str(e))
            return reply("first answer")

        model.queue(reentrant)
        update = controller.send_message("first message")

        assert seen == [True, "A reply is still being generated."]
        assert update.messages == ["first answer"]
        assert not controller.busy
        assert "second message" not in [m["content"] for m in controller.get_history()]


class TestAudit:
    def test_session_events_logged(self, make_controller, model, temp_data_dir, complete_fields):
        audit = AuditLogger(log_dir=temp_data_dir / "audit", user_id="user_001", use_presidio=False)
        controller = make_controller(audit_logger=audit)
        model.queue(reply("Which platform?"), call(SUBMIT_DISPUTE, complete_fields))

        controller.send_message("My email is jane@example.com")
        controller.send_message("confirm")

        log_file = next((temp_data_dir / "audit").glob("audit_*.jsonl"))
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        events = [e["event"] for e in entries]

        assert events == ["user_input", "llm_response", "user_input", "llm_response", "dispute_created"]
        assert "jane@example.com" not in log_file.read_text()
        assert entries[3]["signal"] == "submit"


def test_from_settings(monkeypatch, storage):
    fake = FakeChatModel()
    monkeypatch.setattr(settings, "llm_provider", "openai")
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr("disputai.agent.extractor.create_llm", lambda **kwargs: fake)

    controller = WizardController.from_settings(storage=storage)

    assert controller.extractor.llm is fake
    assert controller.collector.storage is storage
    assert controller.gateway.storage is storage
    assert controller.audit_logger.log_dir == settings.audit_log_dir
