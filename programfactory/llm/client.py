"""Completion client: the single path from the pipeline to the language model."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models import Model

from ..config import ModelConfig
from ..constants import DEFAULT_MAX_RETRIES, DEFAULT_MODEL
from ..errors import GenerationServiceFailure
from ..utils.retry import schedule_retry

logger = logging.getLogger(__name__)

PROSE_SYSTEM_PROMPT = (
    "You are an expert training content creator. Follow the instructions exactly "
    "and return only the requested text."
)
JSON_SYSTEM_PROMPT = (
    "You are an expert instructional designer. Respond with a single valid JSON "
    "object and nothing else: no prose, no code fences."
)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


@runtime_checkable
class CompletionClient(Protocol):
    """Narrow request/response contract with the model service."""

    async def chat(self, instruction: str, input: Any = None) -> Dict[str, Any]:
        """Return the reply parsed as a JSON object (``{}`` for an empty reply)."""

    async def prose(self, instruction: str, input: Any = None) -> str:
        """Return the reply as free text."""


def format_input(input: Any) -> str:
    """Serialize structured input for the user message."""
    if input is None:
        return ""
    if isinstance(input, str):
        return input
    if isinstance(input, BaseModel):
        input = input.model_dump(mode="json")
    return json.dumps(input, indent=2, default=str)


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse a model reply into a JSON object.

    Code fences are stripped and an empty reply yields ``{}``. Anything that
    is not a JSON object raises :class:`GenerationServiceFailure`.
    """
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        return {}
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationServiceFailure(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise GenerationServiceFailure(
            f"Model reply is a JSON {type(parsed).__name__}, expected an object"
        )
    return parsed


class AgentCompletionClient:
    """Completion client backed by a pydantic-ai :class:`Agent`.

    One agent run per call. Failed or timed-out runs are retried with
    exponential backoff; once retries are exhausted the failure surfaces as
    :class:`GenerationServiceFailure`.
    """

    def __init__(
        self,
        model: str | Model = DEFAULT_MODEL,
        *,
        temperature: Optional[float] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: Optional[float] = None,
        retry_delay: Callable[[int], Awaitable[None]] = schedule_retry,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_retries = max_retries
        self._timeout = timeout
        self._retry_delay = retry_delay

    @classmethod
    def from_config(cls, config: ModelConfig, **kwargs: Any) -> "AgentCompletionClient":
        return cls(
            config.name,
            temperature=config.temperature,
            max_retries=config.max_retries,
            timeout=config.timeout,
            **kwargs,
        )

    async def chat(self, instruction: str, input: Any = None) -> Dict[str, Any]:
        text = await self._complete(instruction, input, JSON_SYSTEM_PROMPT)
        return parse_json_reply(text)

    async def prose(self, instruction: str, input: Any = None) -> str:
        text = await self._complete(instruction, input, PROSE_SYSTEM_PROMPT)
        return (text or "").strip()

    def _build_agent(self, system_prompt: str) -> Agent:
        settings = {"temperature": self._temperature} if self._temperature is not None else None
        return Agent(
            self._model,
            system_prompt=system_prompt,
            output_type=str,
            model_settings=settings,
        )

    async def _complete(self, instruction: str, input: Any, system_prompt: str) -> str:
        prompt = instruction
        payload = format_input(input)
        if payload:
            prompt = f"{instruction}\n\nINPUT:\n{payload}"

        last_error: Optional[BaseException] = None
        for attempt in range(self._max_retries + 1):
            try:
                agent = self._build_agent(system_prompt)
                run = agent.run(prompt)
                if self._timeout:
                    result = await asyncio.wait_for(run, self._timeout)
                else:
                    result = await run
                return result.output
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"Completion timed out after {self._timeout}s (attempt {attempt + 1})"
                )
            except Exception as e:
                last_error = e
                logger.warning(f"Completion failed (attempt {attempt + 1}): {e}")
            if attempt < self._max_retries:
                await self._retry_delay(attempt)

        raise GenerationServiceFailure(
            f"Completion failed after {self._max_retries + 1} attempts: {last_error}"
        ) from last_error
