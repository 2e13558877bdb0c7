import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from app.core.exceptions import InputValidationError
from app.domain.report_entities import ColumnType

# Named bind parameters (":country"); "::" casts are not placeholders.
_PLACEHOLDER = re.compile(r"(?<!:):([A-Za-z_]\w*)")


def parse_date(value: Any) -> date:
    """Converts a raw database value into a ``date``.

    Accepts ``date``/``datetime`` objects and ISO-8601 text such as
    ``2017-01-03`` or ``2017-01-03 00:00:00`` (the Chinook storage format).

    Raises:
        InputValidationError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise InputValidationError(f"Cannot parse {value!r} as a date.")


def coerce_value(value: Any, column_type: ColumnType) -> Any:
    """Casts one raw value to its declared semantic type. NULL stays None."""
    if value is None:
        return None
    try:
        if column_type is ColumnType.INTEGER:
            return int(value)
        if column_type is ColumnType.FLOAT:
            return float(value)
        if column_type is ColumnType.DATE:
            return parse_date(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise InputValidationError(
            f"Cannot convert {value!r} to {column_type.value}: {e}"
        ) from e


class QueryDefinition(BaseModel):
    """A named, parameterized SQL template with a typed result schema.

    The template's ``:placeholders`` must match the declared parameters
    exactly; this is checked when the definition is built, so a broken
    catalog entry fails at import rather than mid-report.
    """

    name: str
    sql: str
    parameters: dict[str, ColumnType] = {}
    columns: dict[str, ColumnType]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_placeholders(self) -> "QueryDefinition":
        placeholders = set(_PLACEHOLDER.findall(self.sql))
        declared = set(self.parameters)
        if placeholders != declared:
            raise ValueError(
                f"Query '{self.name}' placeholders {sorted(placeholders)} "
                f"do not match declared parameters {sorted(declared)}"
            )
        if not self.columns:
            raise ValueError(f"Query '{self.name}' declares no result columns")
        return self

    def bind(self, **params: Any) -> dict[str, Any]:
        """Validates call arguments against the declared parameters."""
        expected = set(self.parameters)
        if set(params) != expected:
            raise InputValidationError(
                f"Query '{self.name}' expects parameters {sorted(expected)}, "
                f"got {sorted(params)}"
            )
        bound = {}
        for key, column_type in self.parameters.items():
            value = params[key]
            if value is None:
                raise InputValidationError(f"Parameter '{key}' of '{self.name}' is required.")
            if column_type is ColumnType.STRING and not isinstance(value, str):
                raise InputValidationError(f"Parameter '{key}' must be a string.")
            if column_type is ColumnType.INTEGER and (isinstance(value, bool) or not isinstance(value, int)):
                raise InputValidationError(f"Parameter '{key}' must be an integer.")
            if column_type is ColumnType.DATE:
                value = parse_date(value).isoformat()
            bound[key] = value
        return bound

    def coerce_row(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Projects a raw row onto the declared columns with typed values."""
        missing = [c for c in self.columns if c not in row]
        if missing:
            raise InputValidationError(
                f"Query '{self.name}' returned rows without columns {missing}"
            )
        return {
            column: coerce_value(row[column], column_type)
            for column, column_type in self.columns.items()
        }


# --- Query Catalog ---

GENRE_SALES = QueryDefinition(
    name="genre_sales",
    sql="""
        SELECT
            g.name AS genre_name,
            SUM(il.quantity) AS tracks_sold
        FROM invoice_line il
            INNER JOIN invoice i ON i.invoice_id = il.invoice_id
            INNER JOIN track t ON t.track_id = il.track_id
            INNER JOIN genre g ON g.genre_id = t.genre_id
        WHERE i.billing_country = :country
        GROUP BY g.genre_id, g.name
        ORDER BY tracks_sold DESC, genre_name ASC
    """,
    parameters={"country": ColumnType.STRING},
    columns={"genre_name": ColumnType.STRING, "tracks_sold": ColumnType.INTEGER},
)

# Inner joins drop employees without any invoiced customer.
AGENT_TOTAL_SALES = QueryDefinition(
    name="agent_total_sales",
    sql="""
        SELECT
            e.employee_id,
            e.first_name,
            e.last_name,
            e.hire_date,
            SUM(i.total) AS total_sales
        FROM invoice i
            INNER JOIN customer c ON c.customer_id = i.customer_id
            INNER JOIN employee e ON e.employee_id = c.support_rep_id
        GROUP BY e.employee_id, e.first_name, e.last_name, e.hire_date
        ORDER BY total_sales DESC, e.employee_id ASC
    """,
    columns={
        "employee_id": ColumnType.INTEGER,
        "first_name": ColumnType.STRING,
        "last_name": ColumnType.STRING,
        "hire_date": ColumnType.DATE,
        "total_sales": ColumnType.FLOAT,
    },
)

# country_customers counts every customer of the country, invoiced or not.
CUSTOMER_SALES = QueryDefinition(
    name="customer_sales",
    sql="""
        SELECT
            c.customer_id,
            c.country,
            (
                SELECT COUNT(*)
                FROM customer c2
                WHERE c2.country = c.country
            ) AS country_customers,
            COUNT(i.invoice_id) AS n_invoices,
            SUM(i.total) AS total_sales
        FROM customer c
            INNER JOIN invoice i ON i.customer_id = c.customer_id
        GROUP BY c.customer_id, c.country
        ORDER BY c.customer_id
    """,
    columns={
        "customer_id": ColumnType.INTEGER,
        "country": ColumnType.STRING,
        "country_customers": ColumnType.INTEGER,
        "n_invoices": ColumnType.INTEGER,
        "total_sales": ColumnType.FLOAT,
    },
)

INVOICE_TRACKS = QueryDefinition(
    name="invoice_tracks",
    sql="""
        SELECT
            il.invoice_id,
            il.track_id,
            t.album_id
        FROM invoice_line il
            LEFT JOIN track t ON t.track_id = il.track_id
        ORDER BY il.invoice_id, il.track_id
    """,
    columns={
        "invoice_id": ColumnType.INTEGER,
        "track_id": ColumnType.INTEGER,
        "album_id": ColumnType.INTEGER,
    },
)

ALBUM_TRACKS = QueryDefinition(
    name="album_tracks",
    sql="""
        SELECT t.album_id, t.track_id
        FROM track t
        WHERE t.album_id IS NOT NULL
        ORDER BY t.album_id, t.track_id
    """,
    columns={"album_id": ColumnType.INTEGER, "track_id": ColumnType.INTEGER},
)

AS_OF_DATE = QueryDefinition(
    name="as_of_date",
    sql="SELECT MAX(i.invoice_date) AS as_of_date FROM invoice i",
    columns={"as_of_date": ColumnType.DATE},
)

QUERY_CATALOG: dict[str, QueryDefinition] = {
    q.name: q
    for q in (
        GENRE_SALES,
        AGENT_TOTAL_SALES,
        CUSTOMER_SALES,
        INVOICE_TRACKS,
        ALBUM_TRACKS,
        AS_OF_DATE,
    )
}
