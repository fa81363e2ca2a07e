"""Core: config, service context, and application bootstrap.

Single place for settings and process-wide wiring.
"""

from app.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
