"""Configuration management for sql2csv.

Usage:
    >>> from sql2csv.config import get_settings
    >>> settings = get_settings()
    >>> settings.export_batch_size
    1000
"""

from sql2csv.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
