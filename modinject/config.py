"""
Configuration management for MODINJECT.

Applications can be created without any configuration; InjectorConfig only
tunes behaviour around the injector core (eager startup, destroy hook name,
metrics, log level). Values can come from keyword arguments or from
environment variables.
"""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import (
    DEFAULT_DESTROY_HOOK,
    DEFAULT_LOG_LEVEL,
    ENV_COLLECT_METRICS,
    ENV_DESTROY_HOOK,
    ENV_EAGER_INSTANTIATION,
    ENV_LOG_LEVEL,
    VALID_LOG_LEVELS,
)
from .exceptions import ConfigurationError

_ENV_FIELDS = {
    "eager_instantiation": ENV_EAGER_INSTANTIATION,
    "destroy_hook_name": ENV_DESTROY_HOOK,
    "collect_metrics": ENV_COLLECT_METRICS,
    "log_level": ENV_LOG_LEVEL,
}


class InjectorConfig(BaseModel):
    """
    Injector runtime configuration.

    Example:
        # Using environment variables
        config = InjectorConfig.from_env()
        app = create_app(modules, providers, config=config)

        # Or using direct parameters
        config = InjectorConfig(collect_metrics=True)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    eager_instantiation: bool = Field(
        True, description="Instantiate singleton injectors when the application starts"
    )
    destroy_hook_name: str = Field(
        DEFAULT_DESTROY_HOOK,
        description="Method invoked on operation-scoped objects when an operation ends",
    )
    collect_metrics: bool = Field(
        False, description="Record instantiation and operation timings"
    )
    log_level: str = Field(DEFAULT_LOG_LEVEL, description="Level of the modinject logger")

    @field_validator("destroy_hook_name")
    @classmethod
    def _check_hook_name(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"destroy_hook_name must be a valid identifier, got {value!r}")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {value!r}")
        return level

    @classmethod
    def create(cls, **values: Any) -> "InjectorConfig":
        """
        Build a config, raising ConfigurationError instead of ValidationError.

        Raises:
            ConfigurationError: If a value is invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ConfigurationError(
                f"Invalid injector configuration: {first.get('msg')}",
                config_key=field,
                config_value=values.get(field) if field else None,
            ) from e

    @classmethod
    def from_env(cls, **overrides: Any) -> "InjectorConfig":
        """
        Read configuration from ``MODINJECT_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        values: dict[str, Any] = {
            field: os.environ[env] for field, env in _ENV_FIELDS.items() if env in os.environ
        }
        values.update(overrides)
        return cls.create(**values)
