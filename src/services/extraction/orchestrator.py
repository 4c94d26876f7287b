"""Extraction orchestrator: prompt, model call, validation, bookkeeping."""

from __future__ import annotations

import logging
import time

from core.config import get_settings
from schemas.discovery import DiscoveredAttribute
from schemas.extraction import (
    CategorySchema,
    CompletedExtraction,
    ExtractionResult,
    FailedExtraction,
)
from services.extraction.exceptions import ExtractionError, ParseError
from services.extraction.interfaces import (
    AnalyticsSinkProtocol,
    DiscoverySinkProtocol,
    VisionModelProtocol,
)
from services.extraction.models import AnalyticsEvent
from services.extraction.pricing import estimate_cost
from services.extraction.prompts import build_extraction_prompt
from services.extraction.validator import ResponseValidator


logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class ExtractionOrchestrator:
    """Runs one extraction end to end and never raises for job-level failures.

    Any exception while invoking the model (missing credentials, network
    failure, non-2xx response) becomes a ``FailedExtraction`` carrying the
    exception message. Problems with the response itself are reported by the
    validator as data on a ``CompletedExtraction``, unless
    ``fail_on_parse_error`` is set and the whole response was unparseable.
    """

    def __init__(
        self,
        vision_model: VisionModelProtocol,
        discovery_sink: DiscoverySinkProtocol | None = None,
        analytics_sink: AnalyticsSinkProtocol | None = None,
        validator: ResponseValidator | None = None,
        fail_on_parse_error: bool | None = None,
    ) -> None:
        self.vision_model = vision_model
        self.discovery_sink = discovery_sink
        self.analytics_sink = analytics_sink
        self.validator = validator or ResponseValidator()
        self.fail_on_parse_error = (
            get_settings().FAIL_ON_PARSE_ERROR
            if fail_on_parse_error is None
            else fail_on_parse_error
        )

    async def extract(
        self,
        image_bytes: bytes,
        mime_type: str,
        category: CategorySchema,
        model_id: str,
        discovery_enabled: bool = False,
        job_id: str | None = None,
    ) -> ExtractionResult:
        started = time.perf_counter()
        field_specs = category.enabled_fields
        prompt = build_extraction_prompt(
            category, field_specs, discovery_enabled=discovery_enabled
        )

        try:
            reply = await self.vision_model.complete(
                prompt, image_bytes, mime_type, model_id
            )
        except ExtractionError as e:
            logger.warning(f"Extraction {job_id} failed before completion: {e.message}")
            return self._failed(
                e.message, e.error_code, started, model_id, category, job_id
            )
        except Exception as e:
            logger.warning(
                f"Vision model call failed for job {job_id}: "
                f"{e.__class__.__name__}: {e}"
            )
            return self._failed(
                str(e) or e.__class__.__name__,
                "upstream_error",
                started,
                model_id,
                category,
                job_id,
            )

        logger.debug(f"Raw model response preview: {reply.text[:200]!r}")
        outcome = self.validator.validate(
            reply.text,
            field_specs,
            discovery_enabled=discovery_enabled,
            category_id=category.category_id,
            category_context=category.context,
        )
        cost = estimate_cost(
            model_id,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            has_vision=True,
        )

        if outcome.parse_error is not None and self.fail_on_parse_error:
            error = ParseError(f"Parse error: {outcome.parse_error}")
            return self._failed(
                error.message,
                error.error_code,
                started,
                model_id,
                category,
                job_id,
                tokens_used=reply.total_tokens,
                cost=cost,
            )

        if discovery_enabled:
            self._observe_discoveries(outcome.discoveries, category.category_id, job_id)

        result = CompletedExtraction(
            attributes=outcome.attributes,
            overall_confidence=outcome.overall_confidence,
            tokens_used=reply.total_tokens,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            processing_time_ms=_elapsed_ms(started),
            cost=cost,
            model_id=model_id,
            errors=outcome.errors,
            discoveries=outcome.discoveries,
        )
        logger.info(
            f"Extraction {job_id} completed: {len(result.attributes)} attributes, "
            f"confidence {result.overall_confidence:.2f}, "
            f"{result.tokens_used} tokens, ${result.cost:.6f}"
        )
        self._emit(
            AnalyticsEvent(
                job_id=job_id,
                category_id=category.category_id,
                status=result.status,
                processing_time_ms=result.processing_time_ms,
                tokens_used=result.tokens_used,
                model_id=model_id,
                cost=cost,
                error_message="; ".join(result.errors) or None,
            )
        )
        return result

    def _failed(
        self,
        message: str,
        error_code: str,
        started: float,
        model_id: str,
        category: CategorySchema,
        job_id: str | None,
        *,
        tokens_used: int = 0,
        cost: float = 0.0,
    ) -> FailedExtraction:
        result = FailedExtraction(
            error=message,
            error_code=error_code,
            processing_time_ms=_elapsed_ms(started),
            model_id=model_id,
        )
        self._emit(
            AnalyticsEvent(
                job_id=job_id,
                category_id=category.category_id,
                status=result.status,
                processing_time_ms=result.processing_time_ms,
                tokens_used=tokens_used,
                model_id=model_id,
                cost=cost,
                error_message=message,
            )
        )
        return result

    def _observe_discoveries(
        self,
        discoveries: list[DiscoveredAttribute],
        category_id: str,
        job_id: str | None,
    ) -> None:
        if self.discovery_sink is None:
            return
        try:
            self.discovery_sink.observe(discoveries, category_id)
        except Exception:
            # The extraction result stands even if aggregation fails
            logger.exception(f"Failed to record discoveries for job {job_id}")

    def _emit(self, event: AnalyticsEvent) -> None:
        if self.analytics_sink is None:
            return
        try:
            self.analytics_sink.record(event)
        except Exception:
            # Analytics must never change the outcome of an extraction
            logger.exception(f"Failed to record analytics event for job {event.job_id}")
