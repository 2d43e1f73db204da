"""repo-promoter: cherry-pick promotion of merged changes onto release channels."""

__version__ = "0.1.0"
