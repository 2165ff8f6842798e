"""Command-line helpers for development and deployment."""
