"""Load the live schema of the tables a model cares about."""

import logging
from collections.abc import Iterable

from db_schema_sync.runners.base import QueryRunner
from db_schema_sync.schema.models import SchemaSnapshot

logger = logging.getLogger(__name__)


class SnapshotLoader:
    """Read tables and views through a runner into a ``SchemaSnapshot``.

    Example:
        loader = SnapshotLoader(runner)
        snapshot = await loader.load(t.name for t in model.synchronized_tables)
    """

    def __init__(self, runner: QueryRunner):
        self.runner = runner

    async def load(self, table_paths: Iterable[str]) -> SchemaSnapshot:
        paths = list(dict.fromkeys(table_paths))
        tables = await self.runner.list_tables(paths)
        views = await self.runner.list_views()
        logger.info(f"Loaded snapshot: {len(tables)} tables, {len(views)} views")
        return SchemaSnapshot(tables={t.name: t for t in tables}, views=tuple(views))
