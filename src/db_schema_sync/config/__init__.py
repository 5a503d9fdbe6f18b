"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_schema_sync.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from db_schema_sync.config.loader import load_db_config
from db_schema_sync.config.models import DatabaseConfig, DatabaseProfile, SyncSettings

__all__ = ["load_db_config", "DatabaseConfig", "DatabaseProfile", "SyncSettings"]
