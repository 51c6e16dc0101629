"""Shared infrastructure: logging, settings and observation context."""
