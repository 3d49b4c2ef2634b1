"""Shared helpers: logging utilities and filesystem writes."""
