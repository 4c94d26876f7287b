"""Domain exceptions for the attribute extraction pipeline.

Each exception carries a stable ``error_code`` that is copied onto a
``FailedExtraction`` and onto analytics events, so failures can be grouped
without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ExtractionError(Exception):
    """Base class for extraction domain errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


class ConfigurationError(ExtractionError):
    """Model credentials or provider settings are missing."""

    def __init__(self, message: str = "Model provider is not configured") -> None:
        super().__init__(message=message, error_code="configuration_error")


class UpstreamError(ExtractionError):
    """The vision model could not be reached or returned an error."""

    def __init__(self, message: str = "Vision model request failed") -> None:
        super().__init__(message=message, error_code="upstream_error")


class ParseError(ExtractionError):
    """The model response was not a JSON object."""

    def __init__(self, message: str = "Model response could not be parsed") -> None:
        super().__init__(message=message, error_code="parse_error")


class FieldValidationError(ExtractionError):
    def __init__(self, message: str = "Value not in options") -> None:
        super().__init__(message=message, error_code="field_validation_error")
