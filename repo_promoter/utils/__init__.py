"""Shared utilities (logging configuration)."""
