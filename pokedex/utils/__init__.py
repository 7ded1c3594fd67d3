"""Configuration and small helpers."""
