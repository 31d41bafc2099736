"""Shared low-level helpers."""
