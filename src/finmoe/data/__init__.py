"""Data definitions."""
