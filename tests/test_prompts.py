"""Tests for prompt construction and the transcript."""

from disputai.agent.prompts import format_missing_fields, get_system_prompt
from disputai.agent.transcript import Transcript


class TestSystemPrompt:
    def test_includes_fields_and_flows(self):
        prompt = get_system_prompt()
        assert "platform_name [required]" in prompt
        assert "subscription_auto_renewal: do not ask about tracking_info" in prompt
        assert "item_not_delivered: do not ask about service_usage" in prompt

    def test_tone_and_question_limit(self):
        prompt = get_system_prompt(tone="formal", max_questions=2)
        assert "Be formal." in prompt
        assert "at most 2 questions per turn" in prompt


def test_format_missing_fields():
    text = format_missing_fields(["purchase_date"], {"purchase_amount": "must be greater than zero"})
    assert text.splitlines() == [
        "I still need a few details before I can file your dispute:",
        "- purchase date",
        "- purchase amount (must be greater than zero)",
    ]


class TestTranscript:
    def test_system_first_and_opening(self):
        transcript = Transcript("sys", "Hello")
        assert len(transcript) == 2
        assert transcript.messages[0].type == "system"
        assert transcript.last.content == "Hello"

    def test_messages_are_a_copy(self):
        transcript = Transcript("sys")
        transcript.messages.append("junk")
        assert len(transcript) == 1

    def test_to_dicts(self):
        transcript = Transcript("sys")
        transcript.add_user("hi")
        transcript.add_assistant("hello")
        assert transcript.to_dicts() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        assert transcript.to_dicts(include_system=True)[0] == {"role": "system", "content": "sys"}
