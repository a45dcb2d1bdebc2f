"""Command-line interface for Pattern."""
