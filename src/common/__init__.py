"""Shared helpers: HTTP fetch and logging."""
