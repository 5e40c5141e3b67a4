"""Shared test fixtures and doubles."""
