"""Pytest configuration and shared fixtures."""

from unittest.mock import MagicMock

import pytest

from repo_promoter.config.settings import PromoterSettings
from repo_promoter.models.domain import Branch, Comment, Issue, PullRequest
from repo_promoter.providers.base import GitProvider


@pytest.fixture
def settings() -> PromoterSettings:
    """Settings for the org/repo repository with beta and stable channels."""
    return PromoterSettings(
        git_provider={
            "provider_type": "github",
            "base_url": "https://api.github.com",
            "api_token": "ghp_test_token",
        },
        repository={
            "owner": "org",
            "name": "repo",
            "development_branch": "master",
        },
        promotion={
            "channels": ["beta", "stable"],
            "marker_label": "tracking",
            "final_channel": "stable",
        },
    )


@pytest.fixture
def tracking_issue() -> Issue:
    """Tracking issue referencing pull request #10."""
    return Issue(
        number=7,
        title="[Tracking] Add feature x",
        body="Tracking org/repo#10\nPR https://github.com/org/repo/pull/10 has been merged into master",
        labels=["tracking", "stable"],
        url="https://github.com/org/repo/issues/7",
    )


@pytest.fixture
def source_pr() -> PullRequest:
    """Merged originating pull request from feature-x."""
    return PullRequest(
        number=10,
        title="Add feature x",
        body="Implements feature x",
        head="feature-x",
        base="master",
        url="https://github.com/org/repo/pull/10",
        state="closed",
        merged=True,
    )


@pytest.fixture
def mock_git(source_pr: PullRequest) -> MagicMock:
    """GitProvider mock wired for a successful promotion of #10 onto stable.

    Async methods of GitProvider become AsyncMocks, and every call lands in
    ``mock_git.mock_calls`` in order.
    """
    git = MagicMock(spec=GitProvider)
    git.get_pull_request.return_value = source_pr
    git.get_branch_head.return_value = "S"
    git.create_branch.side_effect = lambda name, sha: Branch(name=name, sha=sha)
    git.list_pull_request_commits.return_value = ["c1", "c2", "c3"]
    git.cherry_pick.return_value = "H"
    git.create_pull_request.side_effect = lambda title, body, head, base: PullRequest(
        number=11,
        title=title,
        body=body,
        head=head,
        base=base,
        url="https://github.com/org/repo/pull/11",
    )
    git.add_comment.side_effect = lambda number, body: Comment(id=501, body=body, author="promoter-bot")
    return git
