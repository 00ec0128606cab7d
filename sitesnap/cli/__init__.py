"""Command-line interface for Sitesnap."""
