"""Command-line interface for Hub Bridge."""
