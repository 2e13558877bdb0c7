import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DataAccessError
from app.data_access.database import DataSource
from app.data_access.models import REQUIRED_TABLES
from app.domain.report_entities import TableInfo

logger = logging.getLogger(__name__)


class SchemaCatalogService:
    """Discovery and diagnostics over the tables and views of the data source."""

    def __init__(self, data_source: DataSource) -> None:
        self.data_source = data_source

    def list_tables_and_views(self) -> List[TableInfo]:
        """Lists every table and view, tables first, each group sorted by name.

        Raises:
            DataAccessError: If the database cannot be inspected.
        """
        try:
            with self.data_source.engine.connect() as conn:
                inspector = inspect(conn)
                tables = sorted(inspector.get_table_names())
                views = sorted(inspector.get_view_names())
        except SQLAlchemyError as e:
            logger.error(f"Schema inspection failed: {e}")
            raise DataAccessError(f"Database error: {e}") from e

        return [TableInfo(name=n, kind="table") for n in tables] + [
            TableInfo(name=n, kind="view") for n in views
        ]

    def missing_tables(self) -> List[str]:
        """Returns the Chinook tables the report needs but the database lacks."""
        available = {t.name.lower() for t in self.list_tables_and_views()}
        missing = [name for name in REQUIRED_TABLES if name not in available]
        if missing:
            logger.warning(f"Database is missing required tables: {missing}")
        return missing
