"""Shared fixtures for the test suite."""

import shutil
import tempfile
from pathlib import Path

import pytest
from langchain_core.messages import AIMessage

from disputai.config import settings
from disputai.data.storage import Storage
from disputai.utils.session import reset_current_user_id, set_current_user_id


class FakeChatModel:
    """Chat model stand-in that replays queued responses.

    Queue AIMessages to return them in order, or exceptions to raise them.
    A callable is called with the messages and its result returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[list] = []
        self.bound_tools = None

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        return self

    def queue(self, *responses):
        self.responses.extend(responses)

    def invoke(self, messages, **kwargs):
        self.calls.append(list(messages))
        if not self.responses:
            raise AssertionError("FakeChatModel has no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(messages)
        return response


def reply(text: str) -> AIMessage:
    return AIMessage(content=text)


def call(name: str, args: dict | None = None, call_id: str = "call_1") -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args or {}, "id": call_id, "type": "tool_call"}],
    )


COMPLETE_FIELDS = {
    "platform_name": "Amazon",
    "purchase_date": "2024-03-01",
    "purchase_amount": 49.99,
    "currency": "usd",
    "problem_type": "item_not_delivered",
    "description": "Package never arrived after three weeks of waiting.",
    "tracking_info": "1Z999AA10123456784",
    "country": "US",
    "user_contact_platform": "no",
    "training_permission": "yes",
}


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory for tests."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture(autouse=True)
def isolated_settings(temp_data_dir, monkeypatch):
    """Point every test at a scratch data and log directory with regex-only masking."""
    monkeypatch.setattr(settings, "data_dir", temp_data_dir / "data")
    monkeypatch.setattr(settings, "audit_log_dir", temp_data_dir / "logs")
    monkeypatch.setattr(settings, "audit_use_presidio", False)
    monkeypatch.setattr(settings, "storage_backend", "local")
    yield


@pytest.fixture
def storage(temp_data_dir):
    return Storage(temp_data_dir / "data")


@pytest.fixture
def user_001():
    """Log in as user_001 for the duration of a test."""
    token = set_current_user_id("user_001")
    yield "user_001"
    reset_current_user_id(token)


@pytest.fixture
def complete_fields():
    return dict(COMPLETE_FIELDS)
