"""
Client-side reshaping of report rows

Turns the rows returned by the reports API into the values the dashboard
widgets display:
- orders vs target aggregated per salesperson when every year is shown
- salesperson id -> display name resolution
- global conversion rate and objective attainment
- month ordering, French labels, month-over-month deltas and back-fill
- order reason shares and funnel total
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union
import logging
import math

import pandas as pd

from sales_indicators.api.models.report import (
    CommandeObjectif,
    Commercial,
    TauxConversion,
    CAParMois,
    MotifRepartition,
    FunnelBucket,
    TempsCAConversion,
)

logger = logging.getLogger(__name__)

MAX_ATTAINMENT = 200.0
MONTHS = list(range(1, 13))

ENGLISH_MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
FRENCH_MONTHS = [
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
]
UNKNOWN_MONTH_LABEL = "Mois inconnu"


@dataclass
class ObjectiveSummary:
    """Totals and attainment shown by the objective gauge"""
    actual_revenue: float
    target_revenue: float
    percentage: float


@dataclass
class ConversionSummary:
    """Totals and global rate shown by the conversion gauge"""
    quote_count: int
    order_count: int
    rate: float


@dataclass
class MonthComparison:
    """One bar of the monthly comparison chart"""
    month: Optional[int]
    label: str
    revenue: float
    delta_percent: Optional[float]

    @property
    def increased(self) -> bool:
        # the first month has no delta and is shown as an increase
        return self.delta_percent is None or self.delta_percent >= 0


@dataclass
class MotifShare:
    """One slice of the order reason pie"""
    reason: str
    quote_count: int
    percentage: int


# =========================================================================
# SALESPERSON
# =========================================================================

def aggregate_by_salesperson(rows: Sequence[CommandeObjectif]) -> List[CommandeObjectif]:
    """
    Sum actual and target revenue of the rows sharing a salesperson

    Salespeople keep the order of their first row. The year of an
    aggregated row is the most recent year it covers.
    """
    if not rows:
        return []

    df = pd.DataFrame([row.model_dump() for row in rows])
    grouped = df.groupby("salesperson_id", sort=False).agg(
        actual_revenue=("actual_revenue", "sum"),
        target_revenue=("target_revenue", "sum"),
        year=("year", "max"),
    )

    return [
        CommandeObjectif(
            salesperson_id=salesperson_id,
            actual_revenue=float(values["actual_revenue"]),
            target_revenue=float(values["target_revenue"]),
            year=int(values["year"]),
        )
        for salesperson_id, values in grouped.iterrows()
    ]


def orders_vs_target(rows: Sequence[CommandeObjectif], annee: Optional[int]) -> List[CommandeObjectif]:
    """Rows for the orders chart: one per salesperson whatever the year filter"""
    if annee is None:
        return aggregate_by_salesperson(rows)
    return list(rows)


def build_directory(commerciaux: Iterable[Commercial]) -> Dict[str, str]:
    return {commercial.id: commercial.name for commercial in commerciaux}


def resolve_name(salesperson_id: str, directory: Dict[str, str]) -> str:
    """Display name of a salesperson, falling back to the raw id"""
    return directory.get(salesperson_id) or salesperson_id


# =========================================================================
# RATES
# =========================================================================

def conversion_summary(rows: Iterable[TauxConversion]) -> ConversionSummary:
    """
    Global conversion rate recomputed from the quote and order counts

    Per-row rates are not averaged: the aggregate is
    sum(orders) / sum(quotes) * 100, or 0 without quotes.
    """
    quotes = 0
    orders = 0
    for row in rows:
        quotes += row.quote_count
        orders += row.order_count

    rate = orders / quotes * 100 if quotes > 0 else 0.0
    return ConversionSummary(quote_count=quotes, order_count=orders, rate=rate)


def attainment_percentage(actual_revenue: float, target_revenue: float) -> float:
    """
    Percentage of the revenue target reached, capped at 200

    A missing (zero or negative) target counts as exceeded when something
    was ordered.
    """
    if target_revenue <= 0:
        return MAX_ATTAINMENT if actual_revenue > 0 else 0.0
    return min(MAX_ATTAINMENT, actual_revenue / target_revenue * 100)


def objective_summary(rows: Iterable[CommandeObjectif]) -> ObjectiveSummary:
    actual = 0.0
    target = 0.0
    for row in rows:
        actual += row.actual_revenue
        target += row.target_revenue

    return ObjectiveSummary(
        actual_revenue=actual,
        target_revenue=target,
        percentage=attainment_percentage(actual, target),
    )


# =========================================================================
# MONTHS
# =========================================================================

def month_number(month: Union[int, str, None]) -> Optional[int]:
    """
    Month number (1-12) from a number, a numeric string or an English
    month name; None when the value is not a month.
    """
    if month is None:
        return None

    if isinstance(month, str):
        value = month.strip()
        if value.isdigit():
            month = int(value)
        elif value.lower() in ENGLISH_MONTHS:
            return ENGLISH_MONTHS.index(value.lower()) + 1
        else:
            return None

    return month if 1 <= month <= 12 else None


def french_month_label(month: Optional[int]) -> str:
    if month is None or not 1 <= month <= 12:
        return UNKNOWN_MONTH_LABEL
    return FRENCH_MONTHS[month - 1]


def sort_by_month(rows: Iterable[CAParMois]) -> List[CAParMois]:
    """Calendar order; rows whose month cannot be read go last"""
    return sorted(rows, key=lambda row: month_number(row.month) or 13)


def month_over_month(rows: Iterable[CAParMois]) -> List[MonthComparison]:
    """
    Revenue per month with the change from the previous month shown

    delta = (revenue[i] - revenue[i-1]) / revenue[i-1] * 100. The first
    month, and any month following a zero revenue, has no delta.
    """
    comparisons = []
    previous = None

    for row in sort_by_month(rows):
        month = month_number(row.month)
        delta = None
        if previous is not None and previous != 0:
            delta = (row.revenue - previous) / previous * 100

        comparisons.append(MonthComparison(
            month=month,
            label=french_month_label(month),
            revenue=row.revenue,
            delta_percent=delta,
        ))
        previous = row.revenue

    return comparisons


def backfill_months(df: pd.DataFrame, value_columns: List[str], month_column: str = "month") -> pd.DataFrame:
    """
    Expand a per-month frame to the twelve calendar months

    Args:
        df: Frame with one row per month present
        value_columns: Columns set to 0 for the missing months
        month_column: Column holding the month number

    Returns:
        Frame with exactly twelve rows ordered 1..12
    """
    if df.empty:
        filled = pd.DataFrame(0.0, index=MONTHS, columns=value_columns)
    else:
        filled = (
            df.set_index(month_column)[value_columns]
            .groupby(level=0).sum()
            .reindex(MONTHS, fill_value=0)
        )

    filled.index.name = month_column
    return filled.reset_index()


def conversion_timing_filled(rows: Iterable[TempsCAConversion]) -> List[TempsCAConversion]:
    """Conversion timing for every calendar month, 0 where missing"""
    columns = ["avg_days_to_convert", "avg_revenue_thousands"]
    df = pd.DataFrame([row.model_dump() for row in rows], columns=["month"] + columns)
    filled = backfill_months(df, columns)

    return [
        TempsCAConversion(
            month=int(r.month),
            avg_days_to_convert=float(r.avg_days_to_convert),
            avg_revenue_thousands=float(r.avg_revenue_thousands),
        )
        for r in filled.itertuples(index=False)
    ]


# =========================================================================
# REASONS & FUNNEL
# =========================================================================

def motif_shares(rows: Iterable[MotifRepartition]) -> List[MotifShare]:
    """Share of quotes per order reason, rounded half up to whole percents"""
    rows = list(rows)
    total = sum(row.quote_count for row in rows)

    return [
        MotifShare(
            reason=row.reason,
            quote_count=row.quote_count,
            percentage=math.floor(row.quote_count / total * 100 + 0.5) if total else 0,
        )
        for row in rows
    ]


def funnel_total(buckets: Iterable[FunnelBucket]) -> float:
    return sum(bucket.weighted_revenue for bucket in buckets)
