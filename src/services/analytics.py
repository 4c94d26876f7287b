"""In-memory analytics sink for extraction events."""

from __future__ import annotations

import logging
from collections import Counter

from core.error_handler import StructuredLogger
from schemas.jobs import AnalyticsSummary
from services.extraction.models import AnalyticsEvent


logger = logging.getLogger(__name__)
structured_logger = StructuredLogger(__name__)


class InMemoryAnalyticsSink:
    """Logs each extraction event and keeps running totals.

    Totals live for the process lifetime; durable storage of events is left to
    whatever consumes the structured log stream.
    """

    def __init__(self) -> None:
        self._total = 0
        self._completed = 0
        self._failed = 0
        self._tokens = 0
        self._cost = 0.0
        self._processing_ms = 0
        self._by_category: Counter[str] = Counter()
        self._by_model: Counter[str] = Counter()

    def record(self, event: AnalyticsEvent) -> None:
        structured_logger.info(
            "Extraction finished",
            job_id=event.job_id,
            category_id=event.category_id,
            status=event.status,
            processing_time_ms=event.processing_time_ms,
            tokens_used=event.tokens_used,
            model_id=event.model_id,
            cost=event.cost,
            error_message=event.error_message,
        )
        self._total += 1
        if event.status == "completed":
            self._completed += 1
        else:
            self._failed += 1
        self._tokens += event.tokens_used
        self._cost += event.cost
        self._processing_ms += event.processing_time_ms
        self._by_category[event.category_id] += 1
        self._by_model[event.model_id] += 1

    def summary(self) -> AnalyticsSummary:
        return AnalyticsSummary(
            total_extractions=self._total,
            successful_extractions=self._completed,
            failed_extractions=self._failed,
            total_tokens=self._tokens,
            total_cost=round(self._cost, 6),
            average_processing_time_ms=(
                self._processing_ms / self._total if self._total else 0.0
            ),
            by_category=dict(self._by_category),
            by_model=dict(self._by_model),
        )
