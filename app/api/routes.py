import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.config import settings
from app.core.exceptions import (
    AmbiguousClassificationError,
    DataAccessError,
    DivisionByZeroError,
    InputValidationError,
    ReportError,
)

# Layer 4: Data Access
from app.data_access.database import DataSource, get_data_source

# Layer 3: Domain Entities
from app.domain.report_entities import Report, TableInfo, TabularResult

# Layer 2: Services
from app.services.report_query_service import MultiAlbumPolicy
from app.services.report_service import ReportService
from app.services.schema_service import SchemaCatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


def _to_http_error(e: ReportError) -> HTTPException:
    """Maps a report failure onto an HTTP status."""
    if isinstance(e, DataAccessError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, AmbiguousClassificationError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, (InputValidationError, DivisionByZeroError)):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.error(f"Request failed with {code}: {e}")
    return HTTPException(status_code=code, detail=str(e))


# --- SCHEMA DISCOVERY ---
@router.get("/schema/tables", tags=["Schema"])
def list_tables_and_views(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> list[TableInfo]:
    """Lists the tables and views of the connected database."""
    try:
        return SchemaCatalogService(data_source).list_tables_and_views()
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/schema/missing", tags=["Schema"])
def list_missing_tables(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> list[str]:
    """Names the Chinook tables the report needs but the database lacks."""
    try:
        return SchemaCatalogService(data_source).missing_tables()
    except ReportError as e:
        raise _to_http_error(e)


# --- REPORT SECTIONS ---
@router.get("/reports/as-of-date", tags=["Reports"])
def get_as_of_date(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> dict[str, date]:
    """The latest invoice date; every per-day and per-month rate is measured up to it."""
    try:
        return {"as_of_date": ReportService(data_source).queries.as_of_date()}
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/reports/genre-sales", tags=["Reports"])
def get_genre_sales(
    data_source: Annotated[DataSource, Depends(get_data_source)],
    country: Annotated[str, Query(min_length=1, description="Billing country filter")] = settings.REPORT_COUNTRY,
    top_n: Annotated[Optional[int], Query(ge=1, description="Keep only the N best-selling genres")] = None,
) -> TabularResult:
    """Tracks sold per genre in one country, with each genre's share of the total."""
    try:
        return ReportService(data_source, country=country, genre_top_n=top_n).genre_sales_table()
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/reports/agent-performance", tags=["Reports"])
def get_agent_performance(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> TabularResult:
    """Total sales per support agent, normalized per day and per 30-day month of tenure."""
    try:
        service = ReportService(data_source)
        return service.agent_performance_table(service.queries.as_of_date())
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/reports/country-sales", tags=["Reports"])
def get_country_sales(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> TabularResult:
    """Customers, sales and averages per country; single-customer countries are grouped as 'Other'."""
    try:
        return ReportService(data_source).country_sales_table()
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/reports/purchase-types", tags=["Reports"])
def get_purchase_types(
    data_source: Annotated[DataSource, Depends(get_data_source)],
    multi_album_policy: Annotated[
        Optional[MultiAlbumPolicy],
        Query(description="How invoices spanning several albums are handled")
    ] = None,
) -> TabularResult:
    """Share of invoices that are whole-album purchases versus individual tracks."""
    try:
        return ReportService(data_source, multi_album_policy=multi_album_policy).purchase_types_table()
    except ReportError as e:
        raise _to_http_error(e)


@router.get("/reports/full", tags=["Reports"])
def get_full_report(
    data_source: Annotated[DataSource, Depends(get_data_source)],
) -> Report:
    """Runs every section; a failed section is flagged while the others still render."""
    return ReportService(data_source).run()
