"""Startup configuration errors."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised at startup when security configuration is missing or too weak."""
