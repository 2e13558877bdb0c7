import logging
from collections import defaultdict
from collections.abc import Mapping
from datetime import date
from typing import Literal, Optional, TypeVar

import polars as pl
from pydantic import BaseModel, ValidationError

from app.core.exceptions import AmbiguousClassificationError, InputValidationError

# Layer 4: Data Access
from app.data_access.database import DataSource
from app.data_access.queries import (
    AGENT_TOTAL_SALES,
    ALBUM_TRACKS,
    AS_OF_DATE,
    CUSTOMER_SALES,
    GENRE_SALES,
    INVOICE_TRACKS,
    QueryDefinition,
)

# Layer 3: Domain Entities
from app.domain.report_entities import (
    AgentPerformance,
    AgentSales,
    ColumnType,
    CountrySales,
    GenreSales,
    PurchaseTypeBreakdown,
)

# Layer 2: Metric Post-Processor
from app.services.metric_service import (
    bucket_small_groups,
    normalize_rates,
    order_with_bucket_last,
    percentage,
    percentage_of_total,
)

logger = logging.getLogger(__name__)

MultiAlbumPolicy = Literal["warn", "mixed", "raise"]

EntityT = TypeVar("EntityT", bound=BaseModel)

_POLARS_TYPES = {
    ColumnType.INTEGER: pl.Int64,
    ColumnType.FLOAT: pl.Float64,
    ColumnType.STRING: pl.Utf8,
    ColumnType.DATE: pl.Date,
}


def classify_invoice(
    purchased: set[int],
    track_album: Mapping[int, Optional[int]],
    album_tracks: Mapping[int, set[int]],
) -> str:
    """Classifies one invoice as ``album``, ``single_track`` or ``mixed``.

    The anchor is the lowest purchased track id. The invoice is an album
    purchase only when the purchased set equals the anchor album's full track
    list. Tracks without an album can never match. ``mixed`` means the
    purchased tracks come from two or more albums.
    """
    albums = {track_album.get(t) for t in purchased} - {None}
    if len(albums) > 1:
        return "mixed"
    anchor_album = track_album.get(min(purchased))
    if anchor_album is not None and purchased == album_tracks.get(anchor_album, set()):
        return "album"
    return "single_track"


def _to_entities(model: type[EntityT], rows: list[dict]) -> list[EntityT]:
    """Validates derived rows into ``model``.

    Raises:
        InputValidationError: If a row breaks a model constraint, e.g. a
            negative invoice total in the source data.
    """
    try:
        return [model.model_validate(r) for r in rows]
    except ValidationError as e:
        logger.error(f"Derived {model.__name__} rows failed validation: {e}")
        raise InputValidationError(
            f"Source data produced invalid {model.__name__} rows: {e.error_count()} error(s)."
        ) from e


class ReportQueryService:
    """The named analytical queries of the Chinook business report.

    Each method fetches raw rows through the data source, derives its metrics
    with the post-processor and returns validated domain entities. An empty
    result set yields an empty list.
    """

    def __init__(self, data_source: DataSource) -> None:
        """Initializes the service with a data source.

        Args:
            data_source (DataSource): Adapter used for every query.
        """
        self.data_source = data_source

    def _fetch_frame(self, definition: QueryDefinition, **params) -> pl.DataFrame:
        rows = self.data_source.run(definition, **params)
        schema = {name: _POLARS_TYPES[t] for name, t in definition.columns.items()}
        return pl.DataFrame(rows, schema=schema)

    def as_of_date(self) -> date:
        """Returns the latest invoice date, used as "today" for rate calculations.

        Raises:
            InputValidationError: If the invoice table is empty.
        """
        rows = self.data_source.run(AS_OF_DATE)
        as_of = rows[0]["as_of_date"] if rows else None
        if as_of is None:
            raise InputValidationError("Cannot derive an as-of date from an empty invoice table.")
        return as_of

    def genre_sales(self, country: str, top_n: Optional[int] = None) -> list[GenreSales]:
        """Tracks sold per genre for invoices billed to ``country``.

        Percentages are taken against every genre of the country, before any
        ``top_n`` truncation.

        Args:
            country (str): Billing country filter, e.g. "USA".
            top_n (int, optional): Keep only the best-selling N genres.

        Returns:
            list[GenreSales]: Ordered by tracks sold desc, then genre name.
        """
        if top_n is not None and top_n < 1:
            raise InputValidationError("top_n must be a positive integer.")

        frame = self._fetch_frame(GENRE_SALES, country=country)
        if frame.is_empty():
            logger.info(f"No invoice lines billed to '{country}'.")
            return []

        frame = percentage_of_total(frame, "tracks_sold", "pct_of_total").sort(
            ["tracks_sold", "genre_name"], descending=[True, False]
        )
        if top_n is not None:
            frame = frame.head(top_n)
        return _to_entities(GenreSales, frame.to_dicts())

    def agent_total_sales(self) -> list[AgentSales]:
        """Sum of invoice totals per support agent. Agents without invoices are absent."""
        frame = self._agent_frame()
        return _to_entities(AgentSales, frame.to_dicts())

    def _agent_frame(self) -> pl.DataFrame:
        frame = self._fetch_frame(AGENT_TOTAL_SALES)
        return frame.with_columns(
            pl.concat_str([pl.col("first_name"), pl.col("last_name")], separator=" ").alias("employee_name")
        )

    def agent_performance(self, as_of_date: date) -> list[AgentPerformance]:
        """Agent totals normalized per day and per 30-day month of tenure.

        Args:
            as_of_date (date): Reference date computed once for the report run.

        Raises:
            InputValidationError: If an agent was hired on or after ``as_of_date``.
        """
        frame = self._agent_frame()
        if frame.is_empty():
            return []
        frame = normalize_rates(frame, "total_sales", "hire_date", as_of_date)
        return _to_entities(AgentPerformance, frame.to_dicts())

    def country_sales(self, min_group_size: int = 2) -> list[CountrySales]:
        """Sales per customer country with single-customer countries merged into 'Other'.

        Args:
            min_group_size (int): Countries with fewer distinct customers are
                folded into the 'Other' row. Defaults to 2. The size counts every
                customer of the country, invoiced or not.

        Returns:
            list[CountrySales]: By total sales desc; 'Other' always last.
        """
        frame = self._fetch_frame(CUSTOMER_SALES)
        if frame.is_empty():
            return []

        frame = bucket_small_groups(
            frame.rename({"country": "country_label"}),
            key="country_label",
            member="customer_id",
            min_size=min_group_size,
            size_column="country_customers",
        )
        summary = (
            frame.group_by("country_label")
            .agg(
                pl.col("customer_id").n_unique().alias("n_customers"),
                pl.col("total_sales").sum().alias("total_sales"),
                pl.col("n_invoices").sum().alias("n_invoices"),
            )
            .with_columns(
                (pl.col("total_sales") / pl.col("n_customers")).alias("avg_sales_per_customer"),
                (pl.col("total_sales") / pl.col("n_invoices")).alias("avg_order_value"),
            )
        )
        summary = order_with_bucket_last(summary, key="country_label", by="total_sales")
        return _to_entities(CountrySales, summary.to_dicts())

    def purchase_type_breakdown(self, multi_album_policy: MultiAlbumPolicy = "warn") -> list[PurchaseTypeBreakdown]:
        """Share of invoices that are whole-album purchases versus individual tracks.

        Invoices whose tracks come from several albums cannot equal any single
        album, whichever track is the anchor. They are detected explicitly and
        handled by ``multi_album_policy``:

        - ``warn``: logged and counted as ``single_track``;
        - ``mixed``: counted in a separate ``mixed`` bucket;
        - ``raise``: ``AmbiguousClassificationError``.
        """
        if multi_album_policy not in ("warn", "mixed", "raise"):
            raise InputValidationError(f"Unknown multi-album policy '{multi_album_policy}'.")

        lines = self.data_source.run(INVOICE_TRACKS)
        if not lines:
            return []

        purchased: dict[int, set[int]] = defaultdict(set)
        track_album: dict[int, Optional[int]] = {}
        for line in lines:
            purchased[line["invoice_id"]].add(line["track_id"])
            track_album[line["track_id"]] = line["album_id"]

        album_tracks: dict[int, set[int]] = defaultdict(set)
        for row in self.data_source.run(ALBUM_TRACKS):
            album_tracks[row["album_id"]].add(row["track_id"])

        buckets = ["album", "single_track"] + (["mixed"] if multi_album_policy == "mixed" else [])
        counts = dict.fromkeys(buckets, 0)
        multi_album: list[int] = []
        for invoice_id in sorted(purchased):
            kind = classify_invoice(purchased[invoice_id], track_album, album_tracks)
            if kind == "mixed":
                multi_album.append(invoice_id)
                if multi_album_policy != "mixed":
                    kind = "single_track"
            counts[kind] += 1

        if multi_album:
            if multi_album_policy == "raise":
                raise AmbiguousClassificationError(
                    f"{len(multi_album)} invoices contain tracks from several albums: {multi_album[:10]}"
                )
            if multi_album_policy == "warn":
                logger.warning(
                    f"{len(multi_album)} invoices contain tracks from several albums and were "
                    f"counted as single_track: {multi_album[:10]}"
                )

        total = len(purchased)
        return _to_entities(
            PurchaseTypeBreakdown,
            [
                {"type_of_purchase": kind, "count": count, "pct_of_total": percentage(count, total)}
                for kind, count in counts.items()
            ],
        )
