"""Service interfaces for the extraction pipeline.

These protocols let the orchestrator be wired with real collaborators in the
application and with mocks in tests, without any runtime type probing.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from schemas.discovery import DiscoveredAttribute
from services.extraction.models import AnalyticsEvent, ModelReply


class VisionModelProtocol(Protocol):
    """Sends one image plus prompt to a vision model and returns its text."""

    async def complete(
        self, prompt: str, image_bytes: bytes, mime_type: str, model_id: str
    ) -> ModelReply:
        """Run the model; raises on any invocation failure."""
        ...


class DiscoverySinkProtocol(Protocol):
    """Receives validated discoveries after each successful extraction."""

    def observe(
        self,
        discoveries: Sequence[DiscoveredAttribute],
        category_id: str | None = None,
    ) -> None: ...


class AnalyticsSinkProtocol(Protocol):
    """Receives one event per finished extraction."""

    def record(self, event: AnalyticsEvent) -> None: ...
