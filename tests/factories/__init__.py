"""Test factories."""
