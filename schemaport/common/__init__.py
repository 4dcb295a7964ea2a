"""Shared logging utilities."""
