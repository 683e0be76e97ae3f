"""Batch job models, admission validation and defaulting, webhook serving and settings."""

__version__ = "0.1.0"

__all__ = ["admission", "apis", "configure", "helpers", "options", "webhook"]