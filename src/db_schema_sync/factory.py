"""Build dialects, runners and synchronizers from db.toml profiles.

Profile resolution:
1. Explicit ``profile_name`` argument
2. ``{env_prefix}DB_PROFILE`` environment variable
3. Raise ``ProfileNotFoundError``

Usage:
    from db_schema_sync.factory import create_synchronizer

    synchronizer = create_synchronizer(profile_name="local")
    result = await synchronizer.synchronize()
"""

import importlib
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import quote

from db_schema_sync.config.loader import load_db_config
from db_schema_sync.config.models import DatabaseConfig, DatabaseProfile, SyncSettings
from db_schema_sync.dialects import DIALECTS, get_dialect
from db_schema_sync.dialects.base import Dialect
from db_schema_sync.dialects.postgres import PostgresDialect
from db_schema_sync.errors import CapabilityError
from db_schema_sync.metadata.builder import MetadataBuilder
from db_schema_sync.metadata.declarations import EntityDeclaration, ViewDeclaration
from db_schema_sync.metadata.naming import DefaultNamingStrategy, NamingStrategy
from db_schema_sync.runners.postgres import AsyncPostgresQueryRunner, create_async_engine_pooled
from db_schema_sync.schema.synchronizer import SchemaSynchronizer

logger = logging.getLogger(__name__)

_SCHEME_ALIASES = ("postgres://", "postgresql://")


# ============================================================================
# Profile resolution
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the environment.

    Args:
        env_prefix: Prefix for the env var lookup; ``"APP_"`` reads
            ``APP_DB_PROFILE``.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If the env var is not set
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> db-schema-sync plan\n"
        "or pass --profile <name>."
    )


def get_profile(
    config: DatabaseConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> tuple[str, DatabaseProfile]:
    """Get the profile name and its configuration.

    Raises:
        ProfileNotFoundError: If no profile is configured or the name is unknown
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {available}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Connection building
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution and async driver.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted and a
        ``postgresql+<driver>://`` scheme

    Example:
        >>> resolve_url(DatabaseProfile(url="postgres://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql+asyncpg://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))

    for alias in _SCHEME_ALIASES:
        if url.startswith(alias):
            url = f"postgresql+{profile.driver}://" + url[len(alias):]
            break
    return url


def create_dialect(profile: DatabaseProfile, settings: SyncSettings | None = None) -> Dialect:
    """Instantiate the profile's dialect with the ``[sync]`` options."""
    settings = settings or SyncSettings()
    options: dict = {"schema": settings.schema_name}
    dialect_cls = DIALECTS.get(profile.dialect.lower())
    if dialect_cls is not None and issubclass(dialect_cls, PostgresDialect):
        options["uuid_extension"] = settings.uuid_extension
    return get_dialect(profile.dialect, **options)


def create_runner(
    profile: DatabaseProfile,
    settings: SyncSettings | None = None,
    dialect: Dialect | None = None,
    naming_strategy: NamingStrategy | None = None,
) -> AsyncPostgresQueryRunner:
    """Create a query runner on a fresh pooled engine for ``profile``.

    The engine is disposed when the runner is released.

    Raises:
        CapabilityError: If the profile's dialect has no live runner
    """
    settings = settings or SyncSettings()
    dialect = dialect or create_dialect(profile, settings)
    if not isinstance(dialect, PostgresDialect):
        raise CapabilityError(dialect.name, "Live query runner")

    engine = create_async_engine_pooled(resolve_url(profile))
    return AsyncPostgresQueryRunner(
        engine,
        dialect=dialect,
        naming_strategy=naming_strategy,
        metadata_table=settings.metadata_table,
        dispose_engine=True,
    )


# ============================================================================
# Model loading
# ============================================================================


def load_models(target: str) -> tuple[list[EntityDeclaration], list[ViewDeclaration]]:
    """Import declarations from a ``"package.module:attribute"`` reference.

    The attribute may be an iterable of declarations or a callable
    returning one. Entities and views are split by type.

    Raises:
        ValueError: If ``target`` is malformed or yields something else
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got '{target}'")

    module = importlib.import_module(module_name)
    try:
        declarations = getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{attribute}'") from None
    if callable(declarations):
        declarations = declarations()
    if not isinstance(declarations, Iterable):
        raise ValueError(f"'{target}' is not an iterable of declarations")

    entities: list[EntityDeclaration] = []
    views: list[ViewDeclaration] = []
    for declaration in declarations:
        if isinstance(declaration, EntityDeclaration):
            entities.append(declaration)
        elif isinstance(declaration, ViewDeclaration):
            views.append(declaration)
        else:
            raise ValueError(f"'{target}' contains a non-declaration: {declaration!r}")

    logger.debug(f"Loaded {len(entities)} entities and {len(views)} views from {target}")
    return entities, views


def create_synchronizer(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | str | None = None,
    models: str | None = None,
) -> SchemaSynchronizer:
    """Build a ready-to-run synchronizer for a db.toml profile.

    Args:
        profile_name: Profile from db.toml; defaults to ``{env_prefix}DB_PROFILE``.
        env_prefix: Prefix for environment variable lookup.
        config_path: Path to db.toml.
        models: ``module:attribute`` reference overriding ``[sync] models``.

    Raises:
        FileNotFoundError: If the config file does not exist
        ProfileNotFoundError: If no usable profile is configured
        ValueError: If no models reference is configured
    """
    config = load_db_config(config_path)
    name, profile = get_profile(config, profile_name, env_prefix)

    target = models or config.sync.models
    if not target:
        raise ValueError("No models configured. Set [sync] models in db.toml or pass --models.")
    entities, views = load_models(target)

    dialect = create_dialect(profile, config.sync)
    naming = DefaultNamingStrategy()
    model = MetadataBuilder(dialect, naming, entity_prefix=config.sync.entity_prefix).build(entities, views)
    runner = create_runner(profile, config.sync, dialect=dialect, naming_strategy=naming)

    logger.info(f"Synchronizer ready for profile '{name}' ({dialect.name})")
    return SchemaSynchronizer(runner, dialect, model, naming_strategy=naming)
