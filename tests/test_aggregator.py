import pytest

from src.crimestat_pipeline.etl.aggregator import (
    aggregate_single_month,
    aggregate_to_yearly,
    aggregates_to_frame,
    filter_aggregates,
    summarize_by_category,
    summarize_by_subdivision,
    summarize_by_year,
)
from src.crimestat_pipeline.schemas.category import CanonicalCategory
from src.crimestat_pipeline.schemas.records import AggregatorOptions

from tests.conftest import make_monthly, make_row

HOMICIDE = CanonicalCategory.HOMICIDE
BURGLARY = CanonicalCategory.BURGLARY_RESIDENTIAL


def _by_key(result):
    return {(a.subdivision_code, a.category, a.year): a for a in result.aggregates}


def test_consolidates_source_indices_into_one_category(mapper):
    files = [make_monthly(2023, 1, [
        make_row(1, {"75": 5}),
        make_row(2, {"75": 3}),
        make_row(3, {"75": 7}),
        make_row(51, {"75": 2}),
    ])]

    result = aggregate_to_yearly(files, mapper)

    assert len(result.aggregates) == 1
    agg = result.aggregates[0]
    assert agg.category == HOMICIDE
    assert agg.count == 17
    assert agg.source_indices == (1, 2, 3, 51)


def test_full_year_is_complete(mapper, sample_year):
    result = aggregate_to_yearly(sample_year, mapper)
    aggs = _by_key(result)

    paris = aggs[("75", HOMICIDE, 2023)]
    assert paris.count == 12
    assert paris.is_complete
    assert paris.months_with_data == 12
    assert paris.missing_months == []

    assert aggs[("13", BURGLARY, 2023)].count == 60
    assert result.statistics.complete_years == [2023]
    assert result.statistics.partial_years == []
    assert result.statistics.monthly_files_processed == 12
    assert result.statistics.total_rows_processed == 24
    assert result.statistics.unique_subdivisions == 2
    assert result.statistics.unique_categories == 2
    assert result.warnings == []


def test_months_present_and_missing_partition_the_year(mapper):
    files = [make_monthly(2023, m, [make_row(7, {"75": 4})]) for m in (1, 2, 5)]
    agg = aggregate_to_yearly(files, mapper).aggregates[0]

    assert agg.months_present | set(agg.missing_months) == set(range(1, 13))
    assert not agg.months_present & set(agg.missing_months)
    assert agg.missing_months == [3, 4, 6, 7, 8, 9, 10, 11, 12]
    assert not agg.is_complete


def test_order_independent(mapper):
    a = make_monthly(2023, 1, [make_row(1, {"75": 5, "13": 1})])
    b = make_monthly(2023, 2, [make_row(2, {"75": 3}), make_row(27, {"13": 9})])

    forward = aggregate_to_yearly([a, b], mapper)
    backward = aggregate_to_yearly([b, a], mapper)

    assert forward.aggregates == backward.aggregates


def test_output_sorted_by_year_subdivision_category(mapper):
    files = [
        make_monthly(2024, 1, [make_row(27, {"75": 1}), make_row(1, {"13": 1})]),
        make_monthly(2023, 1, [make_row(1, {"75": 1})]),
    ]
    keys = [a.key for a in aggregate_to_yearly(files, mapper).aggregates]
    assert keys == sorted(keys)
    assert [k.year for k in keys] == [2023, 2024, 2024]


def test_extrapolates_partial_year(mapper):
    files = [make_monthly(2023, m, [make_row(1, {"75": 100})]) for m in range(1, 7)]

    result = aggregate_to_yearly(files, mapper, AggregatorOptions(extrapolate_partial_years=True))

    agg = result.aggregates[0]
    assert agg.count == 1200
    assert agg.extrapolated
    assert agg.months_with_data == 6
    assert any("Extrapolated" in w for w in result.warnings)


def test_no_extrapolation_by_default(mapper):
    files = [make_monthly(2023, m, [make_row(1, {"75": 100})]) for m in range(1, 7)]
    agg = aggregate_to_yearly(files, mapper).aggregates[0]
    assert agg.count == 600
    assert not agg.extrapolated


@pytest.mark.parametrize("extrapolate", [True, False])
def test_complete_year_count_unchanged_by_extrapolation(mapper, sample_year, extrapolate):
    result = aggregate_to_yearly(sample_year, mapper, AggregatorOptions(extrapolate_partial_years=extrapolate))
    assert _by_key(result)[("75", BURGLARY, 2023)].count == 120
    assert not any("Extrapolated" in w for w in result.warnings)


def test_min_months_required_excludes_with_warning(mapper):
    files = [make_monthly(2023, m, [make_row(1, {"75": 1})]) for m in (1, 2)]
    files.append(make_monthly(2023, 3, [make_row(27, {"75": 1})]))

    result = aggregate_to_yearly(files, mapper, AggregatorOptions(min_months_required=2))

    assert [a.category for a in result.aggregates] == [HOMICIDE]
    assert any("minimum 2 required" in w for w in result.warnings)


def test_invalid_month_skips_whole_file(mapper):
    files = [
        make_monthly(2023, 13, [make_row(1, {"75": 50})]),
        make_monthly(2023, 1, [make_row(1, {"75": 1})]),
    ]
    result = aggregate_to_yearly(files, mapper)

    assert result.aggregates[0].count == 1
    assert result.statistics.monthly_files_processed == 1
    assert any("Invalid month 13" in w for w in result.warnings)


def test_unused_indices_skipped_silently_unmapped_warns(mapper):
    files = [make_monthly(2023, 1, [
        make_row(96, {"75": 10}),
        make_row(150, {"75": 10}, label="mystery"),
        make_row(1, {"75": 1}),
    ])]
    result = aggregate_to_yearly(files, mapper)

    assert len(result.aggregates) == 1
    assert result.statistics.rows_skipped == 2
    assert len(result.warnings) == 1
    assert "150" in result.warnings[0]


def test_zero_counts_do_not_mark_month_present(mapper):
    files = [
        make_monthly(2023, 1, [make_row(1, {"75": 2})]),
        make_monthly(2023, 2, [make_row(1, {"75": 0})]),
    ]
    agg = aggregate_to_yearly(files, mapper).aggregates[0]
    assert agg.months_present == frozenset({1})


def test_partial_years_in_statistics(mapper):
    files = [make_monthly(2022, m, [make_row(1, {"75": 1})]) for m in (3, 4)]
    stats = aggregate_to_yearly(files, mapper).statistics
    assert stats.partial_years[0].year == 2022
    assert stats.partial_years[0].months_present == [3, 4]
    assert stats.complete_years == []


def test_repeated_calls_do_not_share_state(mapper, sample_year):
    first = aggregate_to_yearly(sample_year, mapper)
    second = aggregate_to_yearly(sample_year, mapper)
    assert first.aggregates == second.aggregates
    assert first.statistics == second.statistics


def test_aggregate_single_month(mapper):
    rows = [make_row(1, {"75": 2}), make_row(2, {"75": 3}), make_row(97, {"75": 100})]
    assert aggregate_single_month(rows, mapper) == {("75", HOMICIDE): 5}


def test_summaries_and_filters(mapper, sample_year):
    aggregates = aggregate_to_yearly(sample_year, mapper).aggregates

    assert summarize_by_category(aggregates) == {HOMICIDE: 36, BURGLARY: 180}
    assert summarize_by_subdivision(aggregates) == {"75": 132, "13": 84}
    assert summarize_by_year(aggregates) == {2023: 216}

    assert len(filter_aggregates(aggregates, subdivision_codes=["75"])) == 2
    assert len(filter_aggregates(aggregates, categories=["HOMICIDE"])) == 2
    assert [a.count for a in filter_aggregates(aggregates, min_count=100)] == [120]
    assert len(filter_aggregates(aggregates, years=[2022])) == 0
    assert len(filter_aggregates(aggregates, complete_only=True)) == 4


def test_aggregates_to_frame(mapper, sample_year):
    df = aggregates_to_frame(aggregate_to_yearly(sample_year, mapper).aggregates)
    assert len(df) == 4
    assert list(df.columns[:4]) == ["year", "subdivision_code", "category", "count"]
    assert df["is_complete"].all()
    assert set(df["category"]) == {"HOMICIDE", "BURGLARY_RESIDENTIAL"}


def test_aggregates_to_frame_empty():
    df = aggregates_to_frame([])
    assert df.empty
    assert "count" in df.columns
