"""Rich output helpers."""
