"""Command-line interface for Hylo."""
