import logging
from collections.abc import Callable
from datetime import date
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ReportError
from app.data_access.database import DataSource
from app.domain.report_entities import (
    AgentPerformance,
    CountrySales,
    GenreSales,
    PurchaseTypeBreakdown,
    Report,
    ReportSection,
    TabularResult,
)
from app.services.report_query_service import MultiAlbumPolicy, ReportQueryService

logger = logging.getLogger(__name__)


class ReportService:
    """Runs the sections of the Chinook business report.

    The as-of date is derived once per run and handed to every rate
    computation. A section that fails is flagged with its error; the other
    sections still run.
    """

    def __init__(
        self,
        data_source: DataSource,
        country: Optional[str] = None,
        genre_top_n: Optional[int] = None,
        min_group_size: Optional[int] = None,
        multi_album_policy: Optional[MultiAlbumPolicy] = None,
    ) -> None:
        self.queries = ReportQueryService(data_source)
        self.country = country if country is not None else settings.REPORT_COUNTRY
        self.genre_top_n = genre_top_n if genre_top_n is not None else settings.GENRE_TOP_N
        self.min_group_size = min_group_size if min_group_size is not None else settings.OTHER_MIN_GROUP_SIZE
        self.multi_album_policy = multi_album_policy or settings.MULTI_ALBUM_POLICY

    # --- Single sections ---

    def genre_sales_table(self) -> TabularResult:
        records = self.queries.genre_sales(self.country, top_n=self.genre_top_n)
        return TabularResult.from_records("genre_sales", GenreSales, records)

    def agent_performance_table(self, as_of_date: date) -> TabularResult:
        records = self.queries.agent_performance(as_of_date)
        return TabularResult.from_records("agent_performance", AgentPerformance, records)

    def country_sales_table(self) -> TabularResult:
        records = self.queries.country_sales(self.min_group_size)
        return TabularResult.from_records("country_sales", CountrySales, records)

    def purchase_types_table(self) -> TabularResult:
        records = self.queries.purchase_type_breakdown(self.multi_album_policy)
        return TabularResult.from_records("purchase_types", PurchaseTypeBreakdown, records)

    # --- Whole report ---

    def _run_section(self, name: str, build: Callable[[], TabularResult]) -> ReportSection:
        try:
            result = build()
        except ReportError as e:
            logger.error(f"Report section '{name}' failed: {e}")
            return ReportSection(name=name, status="failed", error=str(e))
        logger.info(f"Report section '{name}' produced {len(result.rows)} rows.")
        return ReportSection(name=name, status="ok", result=result)

    def run(self) -> Report:
        """Builds every section in order and returns the assembled report."""
        as_of_date: Optional[date] = None
        as_of_error: Optional[ReportError] = None
        try:
            as_of_date = self.queries.as_of_date()
            logger.info(f"Report as-of date: {as_of_date}")
        except ReportError as e:
            logger.error(f"Cannot derive the as-of date: {e}")
            as_of_error = e

        def build_agent_performance() -> TabularResult:
            if as_of_error is not None:
                raise as_of_error
            return self.agent_performance_table(as_of_date)

        sections = [
            self._run_section("genre_sales", self.genre_sales_table),
            self._run_section("agent_performance", build_agent_performance),
            self._run_section("country_sales", self.country_sales_table),
            self._run_section("purchase_types", self.purchase_types_table),
        ]
        return Report(as_of_date=as_of_date, sections=sections)
