"""Vision model construction for attribute extraction.

Model ids starting with ``gemini-`` are served by Google; every other id goes
to the OpenAI-compatible endpoint (``OPENAI_BASE_URL`` when set). Retries are
owned by the shared HTTP client built here, so provider SDK retries are off.

Usage:
    from services.extraction.model_factory import (
        create_resilient_http_client,
        get_vision_model,
    )

    http_client = create_resilient_http_client()
    model = get_vision_model("gpt-4o", http_client)
"""

from __future__ import annotations

import logging
from typing import cast

from httpx import AsyncClient, HTTPStatusError, Response, TransportError
from openai import AsyncOpenAI
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import get_settings
from services.extraction.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

GEMINI_PREFIX = "gemini-"


def is_gemini_model(model_id: str) -> bool:
    return model_id.lower().startswith(GEMINI_PREFIX)


def _raise_for_server_error(response: Response) -> None:
    """Turn 5xx responses into exceptions the retry policy acts on.

    4xx responses pass through untouched: a bad request or missing permission
    will not improve on retry, and the provider SDK reports them itself.
    """
    if response.status_code >= 500:
        response.raise_for_status()


def create_resilient_http_client() -> AsyncClient:
    """Create an HTTP client that retries transient model-call failures.

    Retries 5xx responses and transport errors (connect/read failures and
    timeouts) with exponential backoff, honouring ``Retry-After`` when the
    provider sends one. Attempts, waits and the per-request timeout come from
    settings.
    """
    settings = get_settings()
    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type((HTTPStatusError, TransportError)),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(
                    multiplier=settings.MODEL_RETRY_MIN_WAIT_SECONDS,
                    min=settings.MODEL_RETRY_MIN_WAIT_SECONDS,
                    max=settings.MODEL_RETRY_MAX_WAIT_SECONDS,
                ),
                max_wait=settings.MODEL_RETRY_MAX_WAIT_SECONDS,
            ),
            stop=stop_after_attempt(settings.MODEL_MAX_ATTEMPTS),
            reraise=True,
        ),
        validate_response=_raise_for_server_error,
    )
    return AsyncClient(transport=transport, timeout=settings.MODEL_TIMEOUT_SECONDS)


def _create_openai_model(model_id: str, http_client: AsyncClient | None) -> Model:
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise ConfigurationError(
            f"OPENAI_API_KEY is not configured; cannot call model {model_id!r}"
        )
    client = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        http_client=http_client,
        max_retries=0,
    )
    return OpenAIChatModel(model_id, provider=OpenAIProvider(openai_client=client))


def _create_gemini_model(model_id: str, http_client: AsyncClient | None) -> Model:
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        raise ConfigurationError(
            f"GEMINI_API_KEY is not configured; cannot call model {model_id!r}"
        )
    provider = GoogleProvider(api_key=settings.GEMINI_API_KEY, http_client=http_client)
    return cast(Model, GoogleModel(model_id, provider=provider))


def get_vision_model(model_id: str, http_client: AsyncClient | None = None) -> Model:
    """Build the pydantic-ai model for ``model_id``.

    Raises:
        ConfigurationError: The provider's API key is not configured. Raised
            before any network call is attempted.
    """
    if is_gemini_model(model_id):
        logger.debug(f"Using Gemini vision model: {model_id}")
        return _create_gemini_model(model_id, http_client)
    logger.debug(f"Using OpenAI vision model: {model_id}")
    return _create_openai_model(model_id, http_client)
