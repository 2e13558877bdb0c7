import logging
from pathlib import Path
from collections.abc import Generator
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine, text

from app.core.config import settings
from app.core.exceptions import DataAccessError
from app.data_access.queries import QueryDefinition

logger = logging.getLogger(__name__)


def sqlite_url(path: str | Path, read_only: bool = True) -> str:
    """Builds a SQLAlchemy URL for a SQLite file.

    Read-only URLs use SQLite's URI mode so that a missing file fails to open
    instead of silently creating an empty database.
    """
    resolved = Path(path).resolve().as_posix()
    if read_only:
        return f"sqlite:///file:{resolved}?mode=ro&uri=true"
    return f"sqlite:///{resolved}"


class DataSource:
    """Executes single statements against the report database.

    Every call opens its own connection and releases it before returning,
    also when the statement fails. There is no pooling and no retry.
    """

    def __init__(self, database_url: str) -> None:
        """Initializes the adapter. No connection is made until a query runs.

        Args:
            database_url (str): SQLAlchemy URL of the read-only store.
        """
        self.database_url = database_url
        self.engine = create_engine(database_url, poolclass=NullPool)

    def execute(self, query: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """Runs one SQL statement and materializes every row.

        Args:
            query (str): The SQL text, using ``:name`` bind parameters.
            params (dict, optional): Values for the bind parameters.

        Returns:
            list[dict[str, Any]]: Rows in result order, keyed by column name.

        Raises:
            DataAccessError: If the connection cannot be opened or the
                statement is rejected.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(query), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"Query failed against {self.engine.url!r}: {e}")
            raise DataAccessError(f"Database error: {e}") from e

    def run(self, definition: QueryDefinition, **params: Any) -> list[dict[str, Any]]:
        """Executes a catalog query and coerces its rows to the declared column types."""
        bound = definition.bind(**params)
        logger.debug(f"Running query '{definition.name}' with {bound}")
        rows = self.execute(definition.sql, bound)
        return [definition.coerce_row(row) for row in rows]

    def dispose(self) -> None:
        self.engine.dispose()


def get_data_source() -> Generator[DataSource, None, None]:
    """FastAPI dependency providing the configured data source."""
    data_source = DataSource(settings.DATABASE_URL)
    try:
        yield data_source
    finally:
        data_source.dispose()
