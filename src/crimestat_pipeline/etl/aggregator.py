"""
Yearly aggregation of État 4001 monthly snapshots.

Folds monthly rows into totals per (subdivision, canonical category, year),
tracking which months contributed so completeness can be reported.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable

import pandas as pd

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.category_mapper import CategoryMapper
from src.crimestat_pipeline.etl.rates import extrapolate_to_full_year
from src.crimestat_pipeline.schemas.category import CanonicalCategory
from src.crimestat_pipeline.schemas.records import (
    AggregationKey,
    AggregationResult,
    AggregationStatistics,
    AggregatorOptions,
    MonthlyFile,
    MonthlyRow,
    PartialYear,
    YearlyAggregate,
)

logger = get_logger(__name__)


@dataclass
class _Accumulator:
    count: int = 0
    months: set[int] = field(default_factory=set)
    indices: set[int] = field(default_factory=set)


def _mapped_counts(row: MonthlyRow, mapper: CategoryMapper):
    """
    Yields (subdivision, category, count) for positive counts of a mapped row.
    Returns nothing for unused or unmapped indices.
    """
    category = mapper.get_canonical_code(row.source_index)
    if category is None:
        return
    for code, count in row.counts_by_subdivision.items():
        if count <= 0:
            continue
        yield code, category, count


def aggregate_to_yearly(
    monthly_files: Iterable[MonthlyFile],
    mapper: CategoryMapper,
    options: AggregatorOptions | None = None,
) -> AggregationResult:
    options = options or AggregatorOptions()
    monthly_files = list(monthly_files)

    warnings: list[str] = []
    rows_processed = 0
    rows_skipped = 0
    files_processed = 0

    acc: dict[AggregationKey, _Accumulator] = defaultdict(_Accumulator)
    months_by_year: dict[int, set[int]] = defaultdict(set)

    logger.info(f"Aggregating {len(monthly_files)} monthly files to yearly totals")

    for monthly in monthly_files:
        if not 1 <= monthly.month <= 12:
            warnings.append(f"Invalid month {monthly.month} in source {monthly.source}, skipping file")
            continue

        files_processed += 1
        months_by_year[monthly.year].add(monthly.month)
        logger.debug(
            f"Processing {len(monthly.rows)} rows from {monthly.source} "
            f"({monthly.year}-{monthly.month:02d})"
        )

        for row in monthly.rows:
            rows_processed += 1

            if mapper.is_unused(row.source_index):
                rows_skipped += 1
                continue

            if not mapper.has_mapping(row.source_index):
                warnings.append(
                    f"No mapping for État 4001 index {row.source_index} ({row.category_label}), skipping"
                )
                rows_skipped += 1
                continue

            for code, category, count in _mapped_counts(row, mapper):
                slot = acc[AggregationKey(monthly.year, code, category)]
                slot.count += count
                slot.months.add(monthly.month)
                slot.indices.add(row.source_index)

    aggregates: list[YearlyAggregate] = []

    for key in sorted(acc):
        slot = acc[key]
        months_with_data = len(slot.months)
        label = f"{key.subdivision_code}/{key.category}/{key.year}"

        if months_with_data < options.min_months_required:
            warnings.append(
                f"{label} has only {months_with_data} months, "
                f"minimum {options.min_months_required} required, excluding"
            )
            continue

        count = slot.count
        extrapolated = False
        if months_with_data < 12 and options.extrapolate_partial_years:
            count = extrapolate_to_full_year(slot.count, months_with_data)
            extrapolated = True
            warnings.append(
                f"{label}: Extrapolated from {months_with_data} months "
                f"(x{12 / months_with_data:.2f}, {slot.count} -> {count})"
            )

        aggregates.append(
            YearlyAggregate(
                subdivision_code=key.subdivision_code,
                category=key.category,
                year=key.year,
                count=count,
                months_present=frozenset(slot.months),
                source_indices=tuple(sorted(slot.indices)),
                extrapolated=extrapolated,
            )
        )

    complete_years = sorted(y for y, months in months_by_year.items() if len(months) == 12)
    partial_years = [
        PartialYear(year=y, months_present=sorted(months))
        for y, months in sorted(months_by_year.items())
        if len(months) < 12
    ]

    statistics = AggregationStatistics(
        monthly_files_processed=files_processed,
        total_rows_processed=rows_processed,
        rows_skipped=rows_skipped,
        unique_years=sorted(months_by_year),
        unique_subdivisions=len({a.subdivision_code for a in aggregates}),
        unique_categories=len({a.category for a in aggregates}),
        complete_years=complete_years,
        partial_years=partial_years,
    )

    logger.info(f"Aggregation complete: {len(aggregates)} yearly records from {rows_processed} monthly rows")
    logger.info(
        f"Years: {', '.join(map(str, statistics.unique_years))} | "
        f"Subdivisions: {statistics.unique_subdivisions} | Categories: {statistics.unique_categories}"
    )
    for partial in partial_years:
        logger.warning(
            f"Year {partial.year} has partial data: months {', '.join(map(str, partial.months_present))}"
        )

    return AggregationResult(aggregates=aggregates, statistics=statistics, warnings=warnings)


def aggregate_single_month(
    rows: Iterable[MonthlyRow],
    mapper: CategoryMapper,
) -> dict[tuple[str, CanonicalCategory], int]:
    """
    Per-(subdivision, category) totals of one monthly file, no year bookkeeping.
    """
    totals: dict[tuple[str, CanonicalCategory], int] = defaultdict(int)
    for row in rows:
        for code, category, count in _mapped_counts(row, mapper):
            totals[(code, category)] += count
    return dict(totals)


# --- Reducers ---

def _sum_by(aggregates: Iterable[YearlyAggregate], attr: str) -> dict:
    totals: dict = defaultdict(int)
    for a in aggregates:
        totals[getattr(a, attr)] += a.count
    return dict(totals)

def summarize_by_category(aggregates: Iterable[YearlyAggregate]) -> dict[CanonicalCategory, int]:
    return _sum_by(aggregates, "category")

def summarize_by_subdivision(aggregates: Iterable[YearlyAggregate]) -> dict[str, int]:
    return _sum_by(aggregates, "subdivision_code")

def summarize_by_year(aggregates: Iterable[YearlyAggregate]) -> dict[int, int]:
    return _sum_by(aggregates, "year")


def filter_aggregates(
    aggregates: Iterable[YearlyAggregate],
    years: Iterable[int] | None = None,
    subdivision_codes: Iterable[str] | None = None,
    categories: Iterable[CanonicalCategory | str] | None = None,
    min_count: int | None = None,
    complete_only: bool = False,
) -> list[YearlyAggregate]:
    predicates: list[Callable[[YearlyAggregate], bool]] = []

    if years is not None:
        year_set = set(years)
        predicates.append(lambda a: a.year in year_set)
    if subdivision_codes is not None:
        code_set = set(subdivision_codes)
        predicates.append(lambda a: a.subdivision_code in code_set)
    if categories is not None:
        category_set = {CanonicalCategory(c) for c in categories}
        predicates.append(lambda a: a.category in category_set)
    if min_count is not None:
        predicates.append(lambda a: a.count >= min_count)
    if complete_only:
        predicates.append(lambda a: a.is_complete)

    return [a for a in aggregates if all(p(a) for p in predicates)]


def aggregates_to_frame(aggregates: Iterable[YearlyAggregate]) -> pd.DataFrame:
    """
    Flat DataFrame view of aggregates, for reports and ad-hoc analysis.
    """
    columns = [
        "year", "subdivision_code", "category", "count",
        "months_with_data", "is_complete", "missing_months", "source_indices",
    ]
    records = [
        {
            "year": a.year,
            "subdivision_code": a.subdivision_code,
            "category": a.category.value,
            "count": a.count,
            "months_with_data": a.months_with_data,
            "is_complete": a.is_complete,
            "missing_months": a.missing_months,
            "source_indices": list(a.source_indices),
        }
        for a in aggregates
    ]
    return pd.DataFrame(records, columns=columns)
