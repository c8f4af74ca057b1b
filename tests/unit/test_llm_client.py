import asyncio
import json

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from programfactory.config import ModelConfig
from programfactory.errors import GenerationServiceFailure
from programfactory.llm import AgentCompletionClient, CompletionClient, parse_json_reply
from programfactory.utils.retry import MAX_BACKOFF_SECONDS, compute_backoff


def _parts(messages: list[ModelMessage], kind: str) -> list[str]:
    return [
        part.content
        for message in messages
        for part in message.parts
        if getattr(part, "part_kind", None) == kind
    ]


async def _no_delay(attempt: int) -> None:
    return None


def test_parse_json_reply():
    assert parse_json_reply('{"score": 80}') == {"score": 80}
    assert parse_json_reply('```json\n{"ok": true}\n```') == {"ok": True}
    assert parse_json_reply("") == {}
    assert parse_json_reply("   ") == {}
    with pytest.raises(GenerationServiceFailure):
        parse_json_reply("not json at all")
    with pytest.raises(GenerationServiceFailure):
        parse_json_reply("[1, 2, 3]")


@pytest.mark.asyncio
async def test_chat_sends_instruction_and_input():
    seen = {}

    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen["prompt"] = _parts(messages, "user-prompt")[-1]
        seen["system"] = _parts(messages, "system-prompt")
        return ModelResponse(parts=[TextPart(json.dumps({"score": 77, "ok": True}))])

    client = AgentCompletionClient(FunctionModel(reply))
    assert isinstance(client, CompletionClient)

    result = await client.chat("Score this", {"artifact": {"type": "article", "content": "x"}})

    assert result == {"score": 77, "ok": True}
    assert seen["prompt"].startswith("Score this\n\nINPUT:\n")
    assert '"type": "article"' in seen["prompt"]
    assert "JSON" in seen["system"][0]


@pytest.mark.asyncio
async def test_prose_returns_stripped_text():
    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        assert _parts(messages, "user-prompt")[-1] == "Write the script"
        return ModelResponse(parts=[TextPart("  Hook. [PAUSE] Close.  \n")])

    client = AgentCompletionClient(FunctionModel(reply))
    assert await client.prose("Write the script") == "Hook. [PAUSE] Close."


@pytest.mark.asyncio
async def test_failures_are_retried_then_succeed():
    attempts = []

    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("service unavailable")
        return ModelResponse(parts=[TextPart("{}")])

    client = AgentCompletionClient(FunctionModel(reply), max_retries=2, retry_delay=_no_delay)
    assert await client.chat("Generate") == {}
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise_generation_failure():
    delays = []

    async def record_delay(attempt: int) -> None:
        delays.append(attempt)

    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise RuntimeError("service unavailable")

    client = AgentCompletionClient(FunctionModel(reply), max_retries=2, retry_delay=record_delay)
    with pytest.raises(GenerationServiceFailure):
        await client.prose("Generate")
    assert delays == [0, 1]


@pytest.mark.asyncio
async def test_timeout_is_a_generation_failure():
    async def slow(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        await asyncio.sleep(5)
        return ModelResponse(parts=[TextPart("late")])

    client = AgentCompletionClient(
        FunctionModel(slow), max_retries=0, timeout=0.05, retry_delay=_no_delay
    )
    with pytest.raises(GenerationServiceFailure):
        await client.prose("Generate")


@pytest.mark.asyncio
async def test_unparseable_chat_reply_raises():
    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[TextPart("Sure! Here is your JSON")])

    client = AgentCompletionClient(FunctionModel(reply))
    with pytest.raises(GenerationServiceFailure):
        await client.chat("Generate")


def test_from_config():
    client = AgentCompletionClient.from_config(
        ModelConfig(name="test", temperature=0.2, max_retries=4, timeout=9.0)
    )
    assert client._model == "test"
    assert client._temperature == 0.2
    assert client._max_retries == 4
    assert client._timeout == 9.0


def test_backoff_grows_and_is_capped():
    assert 1.0 <= compute_backoff(0) <= 1.5
    assert 2.25 <= compute_backoff(2) <= 2.75
    assert compute_backoff(50) == MAX_BACKOFF_SECONDS
