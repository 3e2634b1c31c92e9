"""Append-only chat transcript for one intake session."""

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

ROLE_BY_TYPE = {"system": "system", "ai": "assistant", "human": "user"}


class Transcript:
    """Ordered messages whose first entry is always the system instruction."""

    def __init__(self, system_prompt: str, opening: str | None = None):
        self._messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        if opening:
            self._messages.append(AIMessage(content=opening))

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[BaseMessage]:
        """A copy of the messages, safe to hand to a chat model."""
        return list(self._messages)

    @property
    def last(self) -> BaseMessage:
        return self._messages[-1]

    def add_user(self, content: str) -> HumanMessage:
        message = HumanMessage(content=content)
        self._messages.append(message)
        return message

    def add_assistant(self, content: str) -> AIMessage:
        message = AIMessage(content=content)
        self._messages.append(message)
        return message

    def to_dicts(self, include_system: bool = False) -> list[dict]:
        """Get the transcript as role/content dictionaries."""
        history = []
        for msg in self._messages:
            role = ROLE_BY_TYPE.get(msg.type, msg.type)
            if role == "system" and not include_system:
                continue
            history.append({"role": role, "content": msg.content})
        return history
