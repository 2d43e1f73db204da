"""Tests for repo_promoter/engine/preconditions.py."""

import pytest

from repo_promoter.config.settings import PromotionConfig
from repo_promoter.engine.preconditions import PreconditionValidator
from repo_promoter.exceptions import InvalidLabelError, MissingMarkerError


@pytest.fixture
def validator() -> PreconditionValidator:
    return PreconditionValidator(PromotionConfig())


class TestPreconditionValidator:
    """Tests for channel and marker label checks."""

    @pytest.mark.parametrize("label", ["beta", "stable"])
    def test_accepts_channel_on_tracking_issue(self, validator, label):
        """Should return the channel as the target branch."""
        assert validator.validate(label, ["tracking", label]) == label

    def test_rejects_unknown_label(self, validator):
        with pytest.raises(InvalidLabelError) as exc_info:
            validator.validate("bug", ["tracking"])

        assert exc_info.value.label == "bug"
        assert exc_info.value.message == "Invalid label applied: 'bug'"
        assert exc_info.value.stage == "validate"

    def test_label_check_runs_before_marker_check(self, validator):
        """An invalid label is reported even when the marker is also missing."""
        with pytest.raises(InvalidLabelError):
            validator.validate("bug", [])

    def test_rejects_missing_marker(self, validator):
        with pytest.raises(MissingMarkerError) as exc_info:
            validator.validate("stable", ["stable", "bug"])

        assert exc_info.value.marker_label == "tracking"

    def test_custom_channels_and_marker(self):
        validator = PreconditionValidator(
            PromotionConfig(channels=["lts"], marker_label="promote", final_channel="lts")
        )

        assert validator.validate("lts", ("promote",)) == "lts"
        with pytest.raises(InvalidLabelError):
            validator.validate("stable", ["promote"])
        with pytest.raises(MissingMarkerError):
            validator.validate("lts", ["tracking"])
