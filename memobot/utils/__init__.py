"""Shared numeric utilities."""
