"""Turns the running transcript into a reply, an evidence request or a submission."""

import json
from typing import Any, Literal

from langchain_core.messages import AIMessage, BaseMessage
from pydantic import BaseModel, Field

from disputai.config import settings
from disputai.errors import ExtractionError, MalformedCallError
from disputai.tools.intake import INTAKE_TOOLS, REQUEST_EVIDENCE, SUBMIT_DISPUTE
from disputai.agent.schema import SCHEMA_BY_NAME
from disputai.utils.get_model import Provider, create_llm, resolve_provider
from disputai.utils.logging import get_logger

logger = get_logger("extractor", settings.log_level)


class Extraction(BaseModel):
    """What the chat model decided to do with the latest turn."""

    kind: Literal["reply", "request_evidence", "submit"]
    text: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    """Decode a function-call argument payload into a dict."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise MalformedCallError(f"Function arguments are not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedCallError(f"Function arguments must be an object, got {type(raw).__name__}")
    return raw


def _content_text(message: AIMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    # Some providers return a list of content blocks
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def interpret(message: AIMessage) -> Extraction:
    """Map a chat model response onto an Extraction.

    Raises:
        ExtractionError: If the function call payload is malformed or unknown
    """
    if message.invalid_tool_calls:
        bad = message.invalid_tool_calls[0]
        raise MalformedCallError(
            f"Malformed call to {bad.get('name')}: {bad.get('error') or 'unparseable arguments'}"
        )

    name: str | None = None
    arguments: Any = None
    if message.tool_calls:
        call = message.tool_calls[0]
        name, arguments = call["name"], call["args"]
    elif message.additional_kwargs.get("function_call"):
        # Legacy OpenAI "functions" payload carries the raw JSON string
        call = message.additional_kwargs["function_call"]
        name, arguments = call.get("name"), call.get("arguments")

    if name is None:
        return Extraction(kind="reply", text=_content_text(message))
    if name == REQUEST_EVIDENCE:
        return Extraction(kind="request_evidence", text=_content_text(message))
    if name == SUBMIT_DISPUTE:
        fields = _parse_arguments(arguments)
        # Keys outside the schema are dropped, not trusted
        fields = {k: v for k, v in fields.items() if k in SCHEMA_BY_NAME}
        return Extraction(kind="submit", text=_content_text(message), fields=fields)
    raise MalformedCallError(f"Unknown function requested: {name}")


class ConversationalExtractor:
    """Function-calling wrapper around a chat model."""

    def __init__(self, llm, model_name: str = "unknown"):
        """Bind the intake functions to a chat model.

        Args:
            llm: Any langchain chat model that supports ``bind_tools``
            model_name: Name recorded in audit entries
        """
        self.model_name = model_name
        self.llm = llm.bind_tools(INTAKE_TOOLS)

    @classmethod
    def from_settings(
        cls,
        provider: Provider | None = None,
        api_key: str | None = None,
        model: str | None = None,
    ) -> "ConversationalExtractor":
        provider, api_key, model = resolve_provider(provider, api_key, model)
        llm = create_llm(provider=provider, api_key=api_key, model=model, temperature=0.3)
        logger.info(f"Initialized extractor with {provider}/{model}")
        return cls(llm, model_name=model)

    def extract(self, messages: list[BaseMessage]) -> tuple[Extraction, AIMessage]:
        """Run one model round-trip over the whole transcript.

        Returns:
            The interpreted result and the raw model message

        Raises:
            ExtractionError: On transport failures or malformed function calls
        """
        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            raise ExtractionError(f"Chat model call failed: {e}") from e

        if not isinstance(response, AIMessage):
            raise ExtractionError(f"Unexpected model response type: {type(response).__name__}")
        return interpret(response), response
