"""Observability configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

LogFormat = Literal["json", "console"]


class ObservabilityConfig(BaseModel):
    """Logging and metrics configuration."""

    log_format: LogFormat = Field(default="json", description="Log output format")
    redact_pii: bool = Field(
        default=True,
        description="Redact emails, phone numbers and secrets from logs",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Expose Prometheus metrics at /metrics",
    )
