import logging
from datetime import date
from typing import Optional

import polars as pl

from app.core.exceptions import DivisionByZeroError, InputValidationError
from app.domain.report_entities import DAYS_PER_MONTH, OTHER_LABEL

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# METRIC POST-PROCESSOR
# Pure functions over already-fetched rows. No I/O happens here.
# -----------------------------------------------------------------------------


def percentage(value: float, reference_total: float) -> float:
    """Returns ``value / reference_total * 100``.

    Raises:
        DivisionByZeroError: If the reference total is zero. NaN is never
            returned.
    """
    if reference_total == 0:
        raise DivisionByZeroError("Cannot compute a percentage of a zero total.")
    return value / reference_total * 100


def percentage_of_total(frame: pl.DataFrame, value_column: str, output_column: str) -> pl.DataFrame:
    """Adds the share of each row in the column total, as a percentage.

    An empty frame is returned unchanged (with the output column added);
    a non-empty frame whose column sums to zero raises ``DivisionByZeroError``.
    """
    if frame.is_empty():
        return frame.with_columns(pl.lit(None, dtype=pl.Float64).alias(output_column))

    reference_total = frame.get_column(value_column).sum()
    if reference_total == 0:
        raise DivisionByZeroError(
            f"Column '{value_column}' sums to zero; percentages are undefined."
        )
    return frame.with_columns(
        (pl.col(value_column).cast(pl.Float64) / reference_total * 100).alias(output_column)
    )


def normalize_rates(
    frame: pl.DataFrame,
    total_column: str,
    start_column: str,
    as_of_date: date,
) -> pl.DataFrame:
    """Adds elapsed days and per-day / per-month rates of ``total_column``.

    Elapsed days are whole days from ``start_column`` to ``as_of_date``; a
    month is a fixed 30 days.

    Args:
        frame: Rows with a numeric total and a ``pl.Date`` start column.
        total_column: Name of the column being normalized.
        start_column: Name of the per-row start date (e.g. hire date).
        as_of_date: Reference date shared by every row of the run.

    Returns:
        The frame with ``days_since_reference_date``, ``sales_per_day`` and
        ``sales_per_month`` columns.

    Raises:
        InputValidationError: If any row has no start date or starts on or
            after the as-of date.
    """
    with_days = frame.with_columns(
        (pl.lit(as_of_date) - pl.col(start_column))
        .dt.total_days()
        .alias("days_since_reference_date")
    )

    days = pl.col("days_since_reference_date")
    invalid = with_days.filter(days.is_null() | (days <= 0))
    if not invalid.is_empty():
        starts = invalid.get_column(start_column).to_list()
        raise InputValidationError(
            f"Start dates {starts} are not before the as-of date {as_of_date}."
        )

    per_day = with_days.with_columns(
        (pl.col(total_column).cast(pl.Float64) / pl.col("days_since_reference_date")).alias("sales_per_day")
    )
    return per_day.with_columns(
        (pl.col("sales_per_day") * DAYS_PER_MONTH).alias("sales_per_month")
    )


def bucket_small_groups(
    frame: pl.DataFrame,
    key: str,
    member: str,
    min_size: int = 2,
    label: str = OTHER_LABEL,
    size_column: Optional[str] = None,
) -> pl.DataFrame:
    """Relabels every group of ``key`` with fewer than ``min_size`` distinct ``member`` values.

    When ``size_column`` is given, it holds a precomputed group size (for
    example counted over a wider population than the frame) and is used
    instead of counting ``member`` values in the frame.

    All such groups share ``label`` afterwards, so a later group-by merges
    them into a single synthetic row.
    """
    if min_size < 1:
        raise InputValidationError("min_size must be at least 1.")
    if size_column is not None:
        group_size = pl.col(size_column)
    else:
        group_size = pl.col(member).n_unique().over(key)
    return frame.with_columns(
        pl.when(group_size < min_size)
        .then(pl.lit(label))
        .otherwise(pl.col(key))
        .alias(key)
    )


def order_with_bucket_last(
    frame: pl.DataFrame,
    key: str,
    by: str,
    label: str = OTHER_LABEL,
) -> pl.DataFrame:
    """Sorts by ``by`` descending (ties on ``key``) and moves the ``label`` row to the end."""
    regular = frame.filter(pl.col(key) != label).sort([by, key], descending=[True, False])
    bucket = frame.filter(pl.col(key) == label)
    return pl.concat([regular, bucket])
