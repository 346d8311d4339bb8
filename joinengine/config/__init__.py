"""
Configuration layer - Settings and constants
"""

from joinengine.config.settings import settings, Settings, DatabaseConfig, PROJECT_ROOT
from joinengine.config.constants import (
    FK_SUFFIXES,
    TYPE_FAMILIES,
    UNBOUNDED,
    SQL_DIALECT,
)

__all__ = [
    "settings",
    "Settings",
    "DatabaseConfig",
    "PROJECT_ROOT",
    "FK_SUFFIXES",
    "TYPE_FAMILIES",
    "UNBOUNDED",
    "SQL_DIALECT",
]
