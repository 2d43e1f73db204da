"""
Configuration system using Pydantic for type-safe settings management.

Every component of a promotion run receives the repository identity and token
through a ``PromoterSettings`` value; nothing is read from process-wide
defaults at call time.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, HttpUrl, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_promoter.exceptions import ConfigurationError


class GitProviderConfig(BaseModel):
    """Git provider configuration.

    The token is passed through to the provider as-is; use ``${ENV}``
    interpolation in the YAML file to keep it out of the file itself.
    """

    provider_type: Literal["github"] = Field(default="github", description="Type of Git provider")
    base_url: HttpUrl = Field(
        default="https://api.github.com", validate_default=True, description="Base URL of the provider API"
    )
    api_token: SecretStr = Field(..., description="API token for the provider")


class RepositoryConfig(BaseModel):
    """Repository configuration."""

    owner: str = Field(..., description="Repository owner/organization")
    name: str = Field(..., description="Repository name")
    development_branch: str = Field(default="master", description="Branch that merged changes land on first")

    @property
    def full_name(self) -> str:
        """Repository name in ``owner/name`` form."""
        return f"{self.owner}/{self.name}"


class PromotionConfig(BaseModel):
    """Promotion channels and tracking labels."""

    channels: list[str] = Field(
        default_factory=lambda: ["beta", "stable"],
        description="Labels that name a promotion target branch",
    )
    marker_label: str = Field(default="tracking", description="Label every coordinating issue must carry")
    final_channel: str = Field(
        default="stable",
        description="Channel whose merge closes the tracking issue",
    )
    tracking_title_prefix: str = Field(default="[Tracking]", description="Prefix for tracking issue titles")

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, value: list[str]) -> list[str]:
        """Reject an empty or duplicated channel list."""
        if not value:
            raise ValueError("At least one promotion channel is required")
        if len(set(value)) != len(value):
            raise ValueError(f"Duplicate promotion channels: {value}")
        return value

    @model_validator(mode="after")
    def validate_final_channel(self) -> PromotionConfig:
        """The final channel must be one of the promotion channels."""
        if self.final_channel not in self.channels:
            raise ValueError(f"final_channel '{self.final_channel}' is not in channels {self.channels}")
        return self


class PromoterSettings(BaseSettings):
    """Main promoter settings.

    Combines all configuration sections and provides loading from YAML files
    with environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMOTER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    git_provider: GitProviderConfig
    repository: RepositoryConfig
    promotion: PromotionConfig = Field(default_factory=PromotionConfig)

    @model_validator(mode="after")
    def validate_development_branch(self) -> PromoterSettings:
        """The development branch cannot double as a promotion channel."""
        if self.repository.development_branch in self.promotion.channels:
            raise ValueError(
                f"development_branch '{self.repository.development_branch}' " "must not be a promotion channel"
            )
        return self

    @classmethod
    def from_yaml(cls, config_path: str) -> PromoterSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            PromoterSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except TypeError as e:
            raise ConfigurationError(f"Missing or invalid configuration fields: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
