"""Configuration system for the promoter.

This package provides type-safe configuration management using Pydantic.

Key Components:
    - PromoterSettings: Main configuration container with YAML loading support
    - GitProviderConfig: Git provider configuration (GitHub)
    - RepositoryConfig: Repository identity and development branch
    - PromotionConfig: Promotion channels and the tracking marker label

Example:
    >>> from repo_promoter.config import PromoterSettings
    >>> settings = PromoterSettings.from_yaml("promoter.yaml")
    >>> settings.promotion.channels
    ['beta', 'stable']
"""

from repo_promoter.config.settings import (
    GitProviderConfig,
    PromoterSettings,
    PromotionConfig,
    RepositoryConfig,
)

__all__ = [
    "GitProviderConfig",
    "PromoterSettings",
    "PromotionConfig",
    "RepositoryConfig",
]
