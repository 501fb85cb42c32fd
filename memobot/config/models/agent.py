"""Session and reasoning loop configuration models."""

from pydantic import BaseModel, Field


class SessionConfig(BaseModel):
    """Conversation session settings."""

    ttl_seconds: int = Field(
        default=86400,
        gt=0,
        description="Session lifetime; expired sessions are never reused",
    )
    history_limit: int = Field(
        default=20,
        gt=0,
        description="Messages kept in session history",
    )
    context_history_limit: int = Field(
        default=8,
        gt=0,
        description="History messages sent to the reasoning step",
    )
    cas_retries: int = Field(
        default=3,
        gt=0,
        description="Check-and-set attempts before a session update fails",
    )
    recent_save_window_seconds: int = Field(
        default=60,
        gt=0,
        description="A repeated finalize within this window reports the earlier save",
    )


class AgentConfig(BaseModel):
    """Reasoning loop settings."""

    max_iterations: int = Field(
        default=8,
        gt=0,
        description="Hard bound on reasoning calls per turn",
    )
