"""
Issue and pull request references in free text.

Grammar (first match in the text wins)::

    reference := [ owner "/" repo ] "#" digits
    owner     := [A-Za-z0-9_.-]+
    repo      := [A-Za-z0-9_.-]+

``digits`` must not be followed by a word character, so ``#12abc`` is not a
reference. Text without a reference is rejected rather than guessed at.
"""

import re

import structlog

from repo_promoter.config.settings import RepositoryConfig
from repo_promoter.exceptions import MalformedReferenceError
from repo_promoter.models.domain import IssueReference

log = structlog.get_logger(__name__)

REFERENCE_PATTERN = re.compile(
    r"(?<![\w/#.-])(?:(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+))?#(?P<number>[0-9]+)(?!\w)"
)


def parse_reference(text: str | None) -> IssueReference:
    """Return the first reference in ``text``.

    Raises:
        MalformedReferenceError: If the text is empty or holds no reference
    """
    if not text:
        raise MalformedReferenceError("No reference found: text is empty")

    match = REFERENCE_PATTERN.search(text)
    if match is None:
        raise MalformedReferenceError(f"No '[owner/repo]#<number>' reference found in: {text[:80]!r}")

    return IssueReference(
        number=int(match.group("number")),
        owner=match.group("owner"),
        repo=match.group("repo"),
    )


def format_reference(repository: RepositoryConfig, number: int) -> str:
    """Fully qualified reference, e.g. ``org/repo#42``."""
    return f"{repository.full_name}#{number}"


class IssueReferenceResolver:
    """Resolves the pull request number a tracking issue body points to."""

    def __init__(self, repository: RepositoryConfig):
        self.repository = repository

    def resolve(self, body: str | None) -> int:
        """Extract the referenced number from ``body``.

        A qualified reference must name the configured repository
        (case-insensitively); references into other repositories are rejected.

        Raises:
            MalformedReferenceError: If no reference is found, or it points
                at another repository
        """
        reference = parse_reference(body)

        if reference.qualified and (
            reference.owner.lower() != self.repository.owner.lower()
            or reference.repo.lower() != self.repository.name.lower()
        ):
            raise MalformedReferenceError(
                f"Reference {reference} does not point at {self.repository.full_name}"
            )

        log.debug("reference_resolved", reference=str(reference))
        return reference.number
