"""Root settings model for MemoBot configuration."""

from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from memobot.config.models.agent import AgentConfig, SessionConfig
from memobot.config.models.api import APIConfig
from memobot.config.models.memory import (
    ClassificationConfig,
    RelationshipConfig,
    RetrievalConfig,
)
from memobot.config.models.observability import ObservabilityConfig
from memobot.config.models.providers import ProvidersConfig
from memobot.config.models.storage import StorageConfig

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Module-level variable to store TOML config for settings source
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that reads from TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return the TOML config values."""
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object containing all nested configuration sections.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml (base configuration)
    3. config/{MEMOBOT_ENV}.toml (environment overrides)
    4. MEMOBOT_* environment variables (runtime overrides)
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMOBOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="memobot", description="Application name for logging")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: LogLevel = Field(default="INFO", description="Logging level")

    api: APIConfig = Field(default_factory=APIConfig, description="API server configuration")
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage backend configuration",
    )
    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig,
        description="Embedding and reasoning provider configuration",
    )
    classification: ClassificationConfig = Field(
        default_factory=ClassificationConfig,
        description="Category and tag resolution thresholds",
    )
    retrieval: RetrievalConfig = Field(
        default_factory=RetrievalConfig,
        description="Search tier parameters",
    )
    relationships: RelationshipConfig = Field(
        default_factory=RelationshipConfig,
        description="Relationship graph parameters",
    )
    session: SessionConfig = Field(
        default_factory=SessionConfig,
        description="Conversation session parameters",
    )
    agent: AgentConfig = Field(
        default_factory=AgentConfig,
        description="Reasoning loop parameters",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML config.

        Priority order (highest to lowest):
        1. init_settings (constructor arguments)
        2. env_settings (MEMOBOT_* environment variables)
        3. toml_settings (config/*.toml files)
        4. (defaults from model)
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
