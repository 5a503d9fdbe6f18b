"""Tests for building dialects, runners and synchronizers from profiles.

Covers:
- Profile resolution via {env_prefix}DB_PROFILE
- resolve_url() password substitution and driver scheme
- create_dialect() forwarding [sync] options
- create_runner() rejecting dialects without a live runner
- load_models() import and validation
- create_synchronizer() end to end (engine creation patched)
"""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from db_schema_sync.config.models import DatabaseConfig, DatabaseProfile, SyncSettings
from db_schema_sync.dialects import CockroachDialect, MysqlDialect, PostgresDialect
from db_schema_sync.errors import CapabilityError
from db_schema_sync.factory import (
    ProfileNotFoundError,
    create_dialect,
    create_runner,
    create_synchronizer,
    get_active_profile_name,
    get_profile,
    load_models,
    resolve_url,
)
from db_schema_sync.runners.postgres import AsyncPostgresQueryRunner
from db_schema_sync.schema.synchronizer import SchemaSynchronizer

MODELS_MODULE = '''
from db_schema_sync.metadata import ColumnDeclaration, EntityDeclaration, ViewDeclaration

ENTITIES = [
    EntityDeclaration(
        name="User",
        columns=[ColumnDeclaration(property_name="id", type=int, primary=True)],
    ),
    ViewDeclaration(name="UserIds", expression='SELECT id FROM "user"'),
]


def entities():
    return ENTITIES[:1]


NOT_DECLARATIONS = ["User"]
COUNT = 3
'''


@pytest.fixture
def models_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Importable module with declarations; returns its name."""
    (tmp_path / "schema_sync_sample_models.py").write_text(MODELS_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return "schema_sync_sample_models"


# ============================================================================
# Profile resolution
# ============================================================================


class TestProfileResolution:
    """Verify profile lookup through arguments and environment."""

    CONFIG = DatabaseConfig(profiles={"local": DatabaseProfile(url="postgres://localhost/app")})

    def test_default_prefix_reads_db_profile(self) -> None:
        """Default prefix '' reads DB_PROFILE env var."""
        with patch.dict(os.environ, {"DB_PROFILE": "local"}, clear=False):
            assert get_active_profile_name() == "local"

    def test_custom_prefix(self) -> None:
        """Custom prefix reads the corresponding env var."""
        with patch.dict(os.environ, {"MYAPP_DB_PROFILE": "staging"}, clear=False):
            assert get_active_profile_name(env_prefix="MYAPP_") == "staging"

    def test_raises_when_unset(self) -> None:
        """No env var means ProfileNotFoundError."""
        env_clean = {k: v for k, v in os.environ.items() if k != "DB_PROFILE"}
        with patch.dict(os.environ, env_clean, clear=True):
            with pytest.raises(ProfileNotFoundError, match="DB_PROFILE"):
                get_active_profile_name()

    def test_explicit_name_wins(self) -> None:
        """An explicit profile name is used without reading the environment."""
        with patch.dict(os.environ, {"DB_PROFILE": "other"}, clear=False):
            name, profile = get_profile(self.CONFIG, "local")
        assert name == "local"
        assert profile.url == "postgres://localhost/app"

    def test_unknown_profile(self) -> None:
        """An unknown name lists the available profiles."""
        with pytest.raises(ProfileNotFoundError, match="Available profiles: local"):
            get_profile(self.CONFIG, "prod")


# ============================================================================
# Connection building
# ============================================================================


class TestResolveUrl:
    """Verify resolve_url() handles passwords and drivers."""

    def test_password_substitution_and_encoding(self) -> None:
        """Replaces [YOUR-PASSWORD] with the URL-encoded password."""
        profile = DatabaseProfile(url="postgres://u:[YOUR-PASSWORD]@h/db", db_password="p@ss/w0rd")
        assert resolve_url(profile) == "postgresql+asyncpg://u:p%40ss%2Fw0rd@h/db"

    def test_psycopg_driver(self) -> None:
        """The configured driver selects the URL scheme."""
        profile = DatabaseProfile(url="postgresql://u:p@h/db", driver="psycopg")
        assert resolve_url(profile) == "postgresql+psycopg://u:p@h/db"

    def test_explicit_driver_scheme_untouched(self) -> None:
        """A URL that already names a driver is kept."""
        profile = DatabaseProfile(url="postgresql+asyncpg://u:p@h/db")
        assert resolve_url(profile) == "postgresql+asyncpg://u:p@h/db"

    def test_placeholder_kept_without_password(self) -> None:
        profile = DatabaseProfile(url="postgres://u:[YOUR-PASSWORD]@h/db")
        assert "[YOUR-PASSWORD]" in resolve_url(profile)


class TestCreateDialect:
    """Verify create_dialect() forwards [sync] options."""

    def test_postgres_options(self) -> None:
        profile = DatabaseProfile(url="postgres://localhost/app")
        dialect = create_dialect(profile, SyncSettings(schema="app", uuid_extension="pgcrypto"))
        assert isinstance(dialect, PostgresDialect)
        assert dialect.schema == "app"
        assert dialect.uuid_generator == "gen_random_uuid()"

    def test_cockroach(self) -> None:
        profile = DatabaseProfile(url="postgres://localhost/app", dialect="cockroachdb")
        assert isinstance(create_dialect(profile), CockroachDialect)

    def test_non_postgres_without_uuid_extension(self) -> None:
        """Dialects outside the Postgres family get only schema options."""
        profile = DatabaseProfile(url="mysql://localhost/app", dialect="mysql")
        dialect = create_dialect(profile, SyncSettings(schema="app"))
        assert isinstance(dialect, MysqlDialect)
        assert dialect.schema == "app"


class TestCreateRunner:
    """Verify create_runner()."""

    def test_postgres_runner(self) -> None:
        """The runner owns a fresh pooled engine for the resolved URL."""
        profile = DatabaseProfile(url="postgres://u:[YOUR-PASSWORD]@h/db", db_password="pw")
        settings = SyncSettings(metadata_table="app_metadata")
        with patch("db_schema_sync.factory.create_async_engine_pooled") as mock_create:
            mock_create.return_value = MagicMock()
            runner = create_runner(profile, settings)

        mock_create.assert_called_once_with("postgresql+asyncpg://u:pw@h/db")
        assert isinstance(runner, AsyncPostgresQueryRunner)
        assert runner.metadata_table == "app_metadata"
        assert runner._dispose_engine is True

    def test_sqlite_has_no_live_runner(self) -> None:
        profile = DatabaseProfile(url="sqlite:///app.db", dialect="sqlite")
        with pytest.raises(CapabilityError, match="Live query runner"):
            create_runner(profile)


# ============================================================================
# Models and synchronizer
# ============================================================================


class TestLoadModels:
    """Verify load_models()."""

    def test_iterable_attribute(self, models_module: str) -> None:
        """Entities and views are split by type."""
        entities, views = load_models(f"{models_module}:ENTITIES")
        assert [e.name for e in entities] == ["User"]
        assert [v.name for v in views] == ["UserIds"]

    def test_callable_attribute(self, models_module: str) -> None:
        """A callable attribute is called for its declarations."""
        entities, views = load_models(f"{models_module}:entities")
        assert len(entities) == 1
        assert views == []

    @pytest.mark.parametrize("target", ["no_colon", ":ENTITIES", "module:"])
    def test_malformed_target(self, target: str) -> None:
        with pytest.raises(ValueError, match="module:attribute"):
            load_models(target)

    def test_missing_attribute(self, models_module: str) -> None:
        with pytest.raises(ValueError, match="has no attribute"):
            load_models(f"{models_module}:MISSING")

    def test_not_iterable(self, models_module: str) -> None:
        with pytest.raises(ValueError, match="not an iterable"):
            load_models(f"{models_module}:COUNT")

    def test_non_declaration(self, models_module: str) -> None:
        with pytest.raises(ValueError, match="non-declaration"):
            load_models(f"{models_module}:NOT_DECLARATIONS")


class TestCreateSynchronizer:
    """Verify create_synchronizer() wires config, models and runner."""

    def _config(self, tmp_path: Path, sync: str = "") -> Path:
        path = tmp_path / "db.toml"
        path.write_text('[profiles.local]\nurl = "postgres://localhost/app"\n\n' + sync)
        return path

    def test_builds_synchronizer(self, tmp_path: Path, models_module: str) -> None:
        config = self._config(tmp_path, f'[sync]\nmodels = "{models_module}:ENTITIES"\nentity_prefix = "app_"\n')
        with patch("db_schema_sync.factory.create_async_engine_pooled", return_value=MagicMock()):
            synchronizer = create_synchronizer(profile_name="local", config_path=config)

        assert isinstance(synchronizer, SchemaSynchronizer)
        assert [t.name for t in synchronizer.model.synchronized_tables] == ["app_user"]
        assert [v.name for v in synchronizer.model.views] == ["app_user_ids"]
        assert synchronizer.differ.naming is synchronizer.runner.naming

    def test_models_argument_overrides_config(self, tmp_path: Path, models_module: str) -> None:
        config = self._config(tmp_path)
        with patch("db_schema_sync.factory.create_async_engine_pooled", return_value=MagicMock()):
            synchronizer = create_synchronizer(
                profile_name="local", config_path=config, models=f"{models_module}:entities"
            )
        assert synchronizer.model.views == ()

    def test_no_models_configured(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="No models configured"):
            create_synchronizer(profile_name="local", config_path=self._config(tmp_path))

    def test_profile_from_env_prefix(self, tmp_path: Path, models_module: str) -> None:
        config = self._config(tmp_path, f'[sync]\nmodels = "{models_module}:ENTITIES"\n')
        with patch.dict(os.environ, {"APP_DB_PROFILE": "missing"}, clear=False):
            with pytest.raises(ProfileNotFoundError, match="'missing' not found"):
                create_synchronizer(env_prefix="APP_", config_path=config)
