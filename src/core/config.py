"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "Garment Attribute Extractor"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    ALLOW_CREDENTIALS: bool = True

    # Vision model providers. Keys are optional here; a missing key fails the
    # job at model-construction time rather than at startup.
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    GEMINI_API_KEY: str | None = None
    DEFAULT_MODEL: str = "gpt-4o"

    # Model call behaviour
    MODEL_TIMEOUT_SECONDS: float = 60.0
    MODEL_MAX_ATTEMPTS: int = 3
    MODEL_RETRY_MIN_WAIT_SECONDS: float = 1.0
    MODEL_RETRY_MAX_WAIT_SECONDS: float = 30.0
    MODEL_TEMPERATURE: float = 0.1
    MODEL_MAX_OUTPUT_TOKENS: int = 1500

    # Extraction pipeline
    DISCOVERY_ENABLED: bool = True
    FAIL_ON_PARSE_ERROR: bool = False

    # Image intake
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_IMAGE_DIMENSION: int = 2048

    # Job retention (in-memory store)
    JOB_RETENTION_MINUTES: int = 60
    JOB_EVICTION_INTERVAL_MINUTES: int = 15
    SHUTDOWN_DRAIN_JOBS: bool = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator("MODEL_MAX_ATTEMPTS")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MODEL_MAX_ATTEMPTS must be >= 1")
        return v

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        # Normalize in case the union allows a stray string at runtime
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # The Settings initializer accepts a runtime-only `_env_file` kwarg used by
    # pydantic-settings; mypy's stub doesn't allow this call argument.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
