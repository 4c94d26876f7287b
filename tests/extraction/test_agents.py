"""Tests for the pydantic-ai backed vision model adapter."""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from pydantic_ai.messages import (
    BinaryContent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from core.config import Settings
from services.extraction.agents import PydanticAIVisionModel
from services.extraction.exceptions import ConfigurationError


@pytest.mark.asyncio
async def test_complete_returns_text_and_token_usage() -> None:
    vision_model = PydanticAIVisionModel(
        model_builder=lambda model_id, http_client: TestModel(
            custom_output_text='{"color_main": "RED"}'
        ),
        http_client=httpx.AsyncClient(),
    )

    reply = await vision_model.complete(
        "Extract attributes", b"\xff\xd8fake", "image/jpeg", "gpt-4o"
    )

    assert reply.text == '{"color_main": "RED"}'
    assert reply.input_tokens > 0
    assert reply.output_tokens > 0
    assert reply.total_tokens == reply.input_tokens + reply.output_tokens
    await vision_model.aclose()


@pytest.mark.asyncio
async def test_prompt_and_image_sent_in_one_user_message() -> None:
    seen: list[ModelMessage] = []

    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen.extend(messages)
        return ModelResponse(parts=[TextPart(content="{}")])

    vision_model = PydanticAIVisionModel(
        model_builder=lambda model_id, http_client: FunctionModel(respond),
        http_client=httpx.AsyncClient(),
    )

    await vision_model.complete("Extract attributes", b"png-bytes", "image/png", "gpt-4o")

    request = seen[0]
    assert isinstance(request, ModelRequest)
    user_part = next(p for p in request.parts if isinstance(p, UserPromptPart))
    text, image = user_part.content
    assert text == "Extract attributes"
    assert isinstance(image, BinaryContent)
    assert image.data == b"png-bytes"
    assert image.media_type == "image/png"
    await vision_model.aclose()


@pytest.mark.asyncio
async def test_agents_are_cached_per_model_id() -> None:
    builder = MagicMock(side_effect=lambda model_id, http_client: TestModel())
    vision_model = PydanticAIVisionModel(
        model_builder=builder, http_client=httpx.AsyncClient()
    )

    await vision_model.complete("p", b"img", "image/jpeg", "gpt-4o")
    await vision_model.complete("p", b"img", "image/jpeg", "gpt-4o")
    await vision_model.complete("p", b"img", "image/jpeg", "gpt-4o-mini")

    assert [c.args[0] for c in builder.call_args_list] == ["gpt-4o", "gpt-4o-mini"]
    await vision_model.aclose()


@pytest.mark.asyncio
async def test_missing_api_key_raises_configuration_error() -> None:
    settings = Settings(_env_file=None, OPENAI_API_KEY=None)  # type: ignore[call-arg]
    vision_model = PydanticAIVisionModel(http_client=httpx.AsyncClient())

    with patch(
        "services.extraction.model_factory.get_settings", return_value=settings
    ):
        with pytest.raises(ConfigurationError) as exc_info:
            await vision_model.complete("p", b"img", "image/jpeg", "gpt-4o")

    assert exc_info.value.error_code == "configuration_error"
    await vision_model.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_shared_client() -> None:
    client = httpx.AsyncClient()
    vision_model = PydanticAIVisionModel(
        model_builder=lambda model_id, http_client: TestModel(), http_client=client
    )

    await vision_model.aclose()

    assert client.is_closed
