"""Run configuration for stack refactor planning.

Configuration is an explicit object handed to the entry point rather than process-wide
state, so repeated or concurrent runs with different settings do not interfere.
"""

import asyncio
import os
from pathlib import Path
from typing import Annotated, Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..models import Override
from .assembly import StackSelection
from .exceptions import ConfigurationError

logger = structlog.get_logger()


class RefactorConfig(BaseSettings):
    """Main configuration for a refactor run.

    Values passed in take priority over environment variables (``STACK_REFACTOR_*``,
    ``LOG_LEVEL``) and ``.env``. The YAML file is layered below the environment by
    ``load_config_async``.
    """

    unstable_features: Annotated[list[str], NoDecode] = Field(default_factory=list)
    dry_run: bool = True
    additional_stack_names: Annotated[list[str], NoDecode] = Field(default_factory=list)
    overrides: list[Override] = Field(default_factory=list)
    stacks: StackSelection = Field(default_factory=StackSelection)
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    config_file: str = Field(
        default="refactor.yml", validation_alias=AliasChoices("config_file", "STACK_REFACTOR_CONFIG")
    )

    model_config = SettingsConfigDict(
        env_prefix="STACK_REFACTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("unstable_features", "additional_stack_names", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        """Accept comma-separated strings from the environment."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("overrides", mode="before")
    @classmethod
    def expand_override_entries(cls, v):
        return expand_overrides(v)

    def is_enabled(self, feature: str) -> bool:
        return feature in self.unstable_features


def load_config(config_path: str | None = None) -> RefactorConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        This function cannot be called from a running event loop.
        For async code, use load_config_async() instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(load_config_async(config_path))
    raise RuntimeError(
        "load_config() cannot be called from within an async context. "
        "Use 'await load_config_async()' instead."
    )


async def load_config_async(config_path: str | None = None) -> RefactorConfig:
    """Load configuration from multiple sources (async interface).

    Sources in increasing priority: defaults, the YAML file, environment variables.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file cannot be parsed or holds invalid values
    """
    load_dotenv()

    path = Path(config_path or os.getenv("STACK_REFACTOR_CONFIG", "refactor.yml"))
    data: dict[str, Any] = {}
    if path.exists():
        data = await _load_yaml_config(path)

    try:
        # Explicit values beat the environment, so keys it sets are dropped from the file
        from_environment = RefactorConfig().model_fields_set
        data = {k: v for k, v in data.items() if k.lower() not in from_environment}
        config = RefactorConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    config = config.model_copy(update={"config_file": str(path)})
    logger.debug(
        "Configuration loaded",
        config_file=str(path),
        unstable_features=config.unstable_features,
        overrides=len(config.overrides),
        additional_stacks=config.additional_stack_names,
    )
    return config


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration from file."""

    def _read() -> Any:
        with open(config_path, encoding="utf-8") as f:
            return yaml.safe_load(f)

    try:
        data = await asyncio.to_thread(_read)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")
    return data


def expand_overrides(raw: Any) -> list[Override]:
    """Normalize override entries into one Override per pairing.

    Accepts flat entries ``{account, region, source, destination}`` and grouped
    entries ``{account, region, resources: {source: destination}}``.

    Raises:
        ConfigurationError: If an entry has neither form or lacks its target
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("'overrides' must be a list")

    overrides: list[Override] = []
    for index, entry in enumerate(raw):
        if isinstance(entry, Override):
            overrides.append(entry)
            continue
        if not isinstance(entry, dict) or "account" not in entry or "region" not in entry:
            raise ConfigurationError(f"Override #{index + 1} must name an account and region")

        account, region = str(entry["account"]), str(entry["region"])
        if "resources" in entry:
            resources = entry["resources"]
            if not isinstance(resources, dict):
                raise ConfigurationError(f"Override #{index + 1}: 'resources' must be a mapping")
            for source, destination in resources.items():
                overrides.append(
                    Override(
                        account=account, region=region, source=source, destination=destination
                    )
                )
        elif "source" in entry and "destination" in entry:
            overrides.append(
                Override(
                    account=account,
                    region=region,
                    source=entry["source"],
                    destination=entry["destination"],
                )
            )
        else:
            raise ConfigurationError(
                f"Override #{index + 1} needs 'source' and 'destination' or a 'resources' mapping"
            )
    return overrides
