"""Git provider factory."""

import structlog

from repo_promoter.config.settings import PromoterSettings
from repo_promoter.exceptions import ConfigurationError
from repo_promoter.providers.base import GitProvider
from repo_promoter.providers.github_rest import GitHubRestProvider

log = structlog.get_logger(__name__)


def create_git_provider(settings: PromoterSettings) -> GitProvider:
    """Create the Git provider described by the settings.

    Args:
        settings: Promoter settings

    Returns:
        An unconnected GitProvider; call ``connect()`` before use.

    Raises:
        ConfigurationError: If the provider type is not supported.
    """
    provider_type = settings.git_provider.provider_type
    log.debug("creating_git_provider", provider_type=provider_type)

    if provider_type == "github":
        return GitHubRestProvider(
            token=settings.git_provider.api_token.get_secret_value(),
            owner=settings.repository.owner,
            repo=settings.repository.name,
            base_url=str(settings.git_provider.base_url),
        )

    raise ConfigurationError(f"Unsupported git provider: {provider_type}")
