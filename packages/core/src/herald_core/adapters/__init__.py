"""Adapters for core ports."""
