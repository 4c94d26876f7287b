"""Attribute extraction services."""

from .agents import PydanticAIVisionModel
from .orchestrator import ExtractionOrchestrator
from .validator import ResponseValidator, similarity


__all__ = [
    "ExtractionOrchestrator",
    "PydanticAIVisionModel",
    "ResponseValidator",
    "similarity",
]
