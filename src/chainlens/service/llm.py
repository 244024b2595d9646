"""Language model adapter backed by a Pydantic AI Agent.

Pydantic AI Agents are stateless executors: the per-turn instructions arrive
as run dependencies and the bounded session history as ``message_history``,
so a single Agent instance serves every session.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
from pydantic_ai import Agent, RunContext
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UserError
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from ..domain.domain_type import ChatRole, ErrorCategory
from ..domain.domain_value import HistoryEntry
from ..domain.errors import ModelUnavailableError, classify_error_message, classify_status_code


def to_model_messages(history: Sequence[HistoryEntry]) -> list[ModelMessage]:
    """Map session history onto Pydantic AI's request/response messages."""
    messages: list[ModelMessage] = []
    for entry in history:
        if entry.role is ChatRole.USER:
            messages.append(ModelRequest(parts=[UserPromptPart(content=entry.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=entry.content)]))
    return messages


class PydanticAILanguageModel:
    """``LanguageModel`` port implemented with one cached Agent.

    Args:
        model: Pydantic AI model identifier in 'vendor:model' form
            (e.g. 'anthropic:claude-sonnet-4-5', 'openai:gpt-4o-mini') or a Model instance
        temperature: Sampling temperature for every call
        max_tokens: Output cap for every call
    """

    def __init__(self, model: str | Model, *, temperature: float = 0.2, max_tokens: int = 1024) -> None:
        self.model = model
        self._settings = ModelSettings(temperature=temperature, max_tokens=max_tokens)
        self._client_cache: Agent[str, str] | None = None

    @property
    def client(self) -> Agent[str, str]:
        """Lazy-initialized agent (cached)."""
        if self._client_cache is None:
            agent: Agent[str, str] = Agent(self.model, deps_type=str, output_type=str)

            @agent.instructions
            def turn_instructions(ctx: RunContext[str]) -> str:
                return ctx.deps

            self._client_cache = agent
        return self._client_cache

    async def complete(self, instructions: str, history: Sequence[HistoryEntry], prompt: str) -> str:
        try:
            result = await self.client.run(
                prompt,
                deps=instructions,
                message_history=to_model_messages(history) or None,
                model_settings=self._settings,
            )
        except ModelHTTPError as exc:
            raise ModelUnavailableError(str(exc), classify_status_code(exc.status_code)) from exc
        except (AgentRunError, UserError) as exc:
            raise ModelUnavailableError(str(exc), classify_error_message(str(exc))) from exc
        except httpx.TimeoutException as exc:
            raise ModelUnavailableError(f"Model request timed out: {exc}", ErrorCategory.TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise ModelUnavailableError(f"Model request failed: {exc}", ErrorCategory.NETWORK) from exc
        return result.output


__all__ = ["PydanticAILanguageModel", "to_model_messages"]
