"""Command-line commands for processing GitHub events."""
