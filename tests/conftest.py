"""Shared test fixtures for pytest.

ENVIRONMENT is forced to ``test`` before anything imports settings so no env
file is read and no provider keys are needed. Model calls go through a fake
vision model; pydantic-ai's real model requests are blocked globally.
"""

import io
import json
import os
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from pydantic_ai import models


os.environ["ENVIRONMENT"] = "test"
models.ALLOW_MODEL_REQUESTS = False

from dependencies.state import (
    get_analytics_sink,
    get_discovery_aggregator,
    get_job_scheduler,
)
from main import app
from schemas.extraction import AttributeFieldSpec, AttributeOption, CategorySchema
from services.analytics import InMemoryAnalyticsSink
from services.discovery import DiscoveryAggregator
from services.extraction.models import ModelReply
from services.extraction.orchestrator import ExtractionOrchestrator
from services.jobs.scheduler import ExtractionScheduler


def make_image_bytes(
    size: tuple[int, int] = (120, 160), fmt: str = "JPEG", mode: str = "RGB"
) -> bytes:
    """Render a solid-colour test image in memory."""
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    buf = io.BytesIO()
    Image.new(mode, size, color=color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def tshirt_category() -> CategorySchema:
    """Three-field category: two select fields and one free-text field."""
    return CategorySchema(
        category_id="cat-tshirt",
        category_name="Kids T-Shirt",
        department="Kids",
        sub_department="Tops",
        fields=[
            AttributeFieldSpec(
                key="color_main",
                label="Main Color",
                type="select",
                options=[
                    AttributeOption(short_form="RED", full_form="Red"),
                    AttributeOption(short_form="BLU", full_form="Blue"),
                    AttributeOption(short_form="GRN", full_form="Green"),
                ],
            ),
            AttributeFieldSpec(
                key="neck",
                label="Neck Style",
                type="select",
                options=[
                    AttributeOption(short_form="CREW", full_form="Crew Neck"),
                    AttributeOption(short_form="VNECK", full_form="V Neck"),
                ],
            ),
            AttributeFieldSpec(key="print_desc", label="Print", type="text"),
        ],
    )


@pytest.fixture
def fake_reply() -> Callable[..., ModelReply]:
    def _build(payload: dict | str, input_tokens: int = 1000, output_tokens: int = 200):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return ModelReply(
            text=text, input_tokens=input_tokens, output_tokens=output_tokens
        )

    return _build


@pytest.fixture
def vision_model() -> AsyncMock:
    """Vision model double; tests set ``complete.return_value``/``side_effect``."""
    model = AsyncMock()
    model.complete = AsyncMock(
        return_value=ModelReply(text='{"color_main": "RED"}', input_tokens=10)
    )
    return model


@pytest.fixture
def discovery_aggregator() -> DiscoveryAggregator:
    return DiscoveryAggregator()


@pytest.fixture
def analytics_sink() -> InMemoryAnalyticsSink:
    return InMemoryAnalyticsSink()


@pytest.fixture
def orchestrator(
    vision_model: AsyncMock,
    discovery_aggregator: DiscoveryAggregator,
    analytics_sink: InMemoryAnalyticsSink,
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        vision_model,
        discovery_sink=discovery_aggregator,
        analytics_sink=analytics_sink,
        fail_on_parse_error=False,
    )


@pytest.fixture
def job_scheduler(orchestrator: ExtractionOrchestrator) -> ExtractionScheduler:
    return ExtractionScheduler(orchestrator)


@pytest_asyncio.fixture
async def async_client(
    job_scheduler: ExtractionScheduler,
    discovery_aggregator: DiscoveryAggregator,
    analytics_sink: InMemoryAnalyticsSink,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client wired to fresh in-memory services (lifespan not run)."""
    app.dependency_overrides[get_job_scheduler] = lambda: job_scheduler
    app.dependency_overrides[get_discovery_aggregator] = lambda: discovery_aggregator
    app.dependency_overrides[get_analytics_sink] = lambda: analytics_sink
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    await job_scheduler.shutdown(cancel=True)
    app.dependency_overrides.clear()
