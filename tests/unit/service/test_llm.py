"""Unit tests for the Pydantic AI language model adapter."""

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from chainlens.domain.domain_type import ChatRole, ErrorCategory
from chainlens.domain.domain_value import HistoryEntry
from chainlens.domain.errors import ModelUnavailableError
from chainlens.service.llm import PydanticAILanguageModel, to_model_messages

HISTORY = (
    HistoryEntry(role=ChatRole.USER, content="balance of addr1?"),
    HistoryEntry(role=ChatRole.ASSISTANT, content="1.5 ETH."),
)


def test_history_maps_to_requests_and_responses():
    messages = to_model_messages(HISTORY)

    assert isinstance(messages[0], ModelRequest)
    assert isinstance(messages[0].parts[0], UserPromptPart)
    assert messages[0].parts[0].content == "balance of addr1?"
    assert isinstance(messages[1], ModelResponse)
    assert messages[1].parts[0].content == "1.5 ETH."


@pytest.mark.asyncio
async def test_complete_sends_instructions_history_and_prompt():
    seen: list[list[ModelMessage]] = []

    def reply(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen.append(messages)
        return ModelResponse(parts=[TextPart(content="TOOL_CALL:getGasPrice:{}")])

    model = PydanticAILanguageModel(FunctionModel(reply))

    text = await model.complete("PERSONA: test instructions", HISTORY, "and gas?")

    assert text == "TOOL_CALL:getGasPrice:{}"
    messages = seen[0]
    assert len(messages) == 3
    last = messages[-1]
    assert isinstance(last, ModelRequest)
    assert last.instructions == "PERSONA: test instructions"
    assert last.parts[-1].content == "and gas?"


@pytest.mark.asyncio
async def test_http_errors_become_model_unavailable():
    def overloaded(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise ModelHTTPError(status_code=429, model_name="function")

    model = PydanticAILanguageModel(FunctionModel(overloaded))

    with pytest.raises(ModelUnavailableError) as exc_info:
        await model.complete("instructions", (), "hi")

    assert exc_info.value.category is ErrorCategory.RATE_LIMIT
