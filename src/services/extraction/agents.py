"""Vision model adapter built on pydantic-ai agents."""

from __future__ import annotations

import logging
from collections.abc import Callable

from httpx import AsyncClient
from pydantic_ai import Agent
from pydantic_ai.messages import BinaryContent
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from core.config import get_settings
from services.extraction.model_factory import (
    create_resilient_http_client,
    get_vision_model,
)
from services.extraction.models import ModelReply
from services.extraction.prompts import SYSTEM_PROMPT


logger = logging.getLogger(__name__)

ModelBuilder = Callable[[str, AsyncClient | None], Model]


class PydanticAIVisionModel:
    """``VisionModelProtocol`` implementation that runs one agent per model id.

    Agents are created lazily so a missing API key only fails the jobs that
    actually target that provider. The raw text answer is returned untouched;
    decoding it is the response validator's job.
    """

    def __init__(
        self,
        model_builder: ModelBuilder = get_vision_model,
        http_client: AsyncClient | None = None,
    ) -> None:
        self._model_builder = model_builder
        self._http_client = http_client
        self._agents: dict[str, Agent[None, str]] = {}

    def _get_agent(self, model_id: str) -> Agent[None, str]:
        agent = self._agents.get(model_id)
        if agent is not None:
            return agent

        if self._http_client is None:
            self._http_client = create_resilient_http_client()
        model = self._model_builder(model_id, self._http_client)

        settings = get_settings()
        agent = Agent(
            model,
            output_type=str,
            system_prompt=SYSTEM_PROMPT,
            model_settings=ModelSettings(
                temperature=settings.MODEL_TEMPERATURE,
                max_tokens=settings.MODEL_MAX_OUTPUT_TOKENS,
            ),
        )
        self._agents[model_id] = agent
        return agent

    async def complete(
        self, prompt: str, image_bytes: bytes, mime_type: str, model_id: str
    ) -> ModelReply:
        agent = self._get_agent(model_id)
        result = await agent.run(
            [prompt, BinaryContent(data=image_bytes, media_type=mime_type)]
        )
        usage = result.usage()
        return ModelReply(
            text=result.output,
            input_tokens=usage.input_tokens or 0,
            output_tokens=usage.output_tokens or 0,
        )

    async def aclose(self) -> None:
        """Close the shared HTTP client, if one was created."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        self._agents.clear()
