"""Request dependencies resolving the per-application service objects.

The job scheduler, discovery aggregator and analytics sink are built once in
the application lifespan and kept on ``app.state``. Routes receive them via
``Depends`` so tests can swap in fresh instances with ``dependency_overrides``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from services.analytics import InMemoryAnalyticsSink
from services.discovery import DiscoveryAggregator
from services.jobs.scheduler import ExtractionScheduler


def get_job_scheduler(request: Request) -> ExtractionScheduler:
    return request.app.state.job_scheduler


def get_discovery_aggregator(request: Request) -> DiscoveryAggregator:
    return request.app.state.discovery_aggregator


def get_analytics_sink(request: Request) -> InMemoryAnalyticsSink:
    return request.app.state.analytics_sink


JobSchedulerDep = Annotated[ExtractionScheduler, Depends(get_job_scheduler)]
DiscoveryAggregatorDep = Annotated[DiscoveryAggregator, Depends(get_discovery_aggregator)]
AnalyticsSinkDep = Annotated[InMemoryAnalyticsSink, Depends(get_analytics_sink)]
