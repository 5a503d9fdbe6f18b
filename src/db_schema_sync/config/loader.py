"""Load db.toml into a ``DatabaseConfig``."""

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_schema_sync.config.models import DatabaseConfig, DatabaseProfile, SyncSettings

logger = logging.getLogger(__name__)


def load_db_config(config_path: Path | str | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ``db.toml`` in the current
            working directory)

    Returns:
        DatabaseConfig with all profiles and the sync settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create a db.toml with at least one [profiles.<name>] table."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        # Parse profiles
        profiles = {}
        for name, profile_data in data.get("profiles", {}).items():
            profiles[name] = DatabaseProfile(**profile_data)

        # Parse sync settings
        sync = SyncSettings(**data.get("sync", {}))
    except (TypeError, ValidationError) as e:
        raise ValueError(f"Invalid database config in {config_path}: {e}") from e

    logger.debug(f"Loaded {len(profiles)} profile(s) from {config_path}")
    return DatabaseConfig(profiles=profiles, sync=sync)
