"""Core configuration, errors, logging and normalization helpers."""
