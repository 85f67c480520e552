"""
France monthly pipeline: aggregate -> enrich -> load, composed as plain calls.
"""
from typing import Iterable

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from src.crimestat_pipeline.core.config import settings
from src.crimestat_pipeline.core.exceptions import LoaderValidationError
from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.aggregator import aggregate_to_yearly
from src.crimestat_pipeline.etl.category_mapper import CategoryMapper
from src.crimestat_pipeline.etl.loader import load_france_monthly
from src.crimestat_pipeline.etl.population import PopulationReference
from src.crimestat_pipeline.etl.rate_enricher import RateEnricher
from src.crimestat_pipeline.models import DataSource
from src.crimestat_pipeline.schemas.records import (
    AggregationStatistics,
    AggregatorOptions,
    EnricherOptions,
    EnrichmentStatistics,
    LoaderOptions,
    LoadResult,
    MonthlyFile,
)

logger = get_logger(__name__)


class PipelineOptions(BaseModel):
    data_source_code: str = Field(default_factory=lambda: settings.france_monthly_source_code)

    min_months_required: int = 1
    extrapolate_partial_years: bool = False

    skip_missing_population: bool = False
    fallback_year: int | None = Field(default_factory=lambda: settings.population_fallback_year)

    batch_size: int = Field(default_factory=lambda: settings.etl_batch_size)
    use_transaction: bool = Field(default_factory=lambda: settings.etl_use_transaction)
    skip_unresolved_records: bool = False
    delete_existing_source: bool = False
    rate_tolerance: float = 0.0001

    dry_run: bool = Field(default_factory=lambda: settings.etl_dry_run)


class PipelineRunResult(BaseModel):
    data_source_code: str
    data_source_id: int | None = None
    dry_run: bool = False
    aggregation: AggregationStatistics
    enrichment: EnrichmentStatistics
    load: LoadResult | None = None
    warnings: list[str] = Field(default_factory=list)


def resolve_data_source_id(session_factory: sessionmaker, code: str) -> int | None:
    with session_factory() as db:
        return db.execute(select(DataSource.id).where(DataSource.code == code)).scalar_one_or_none()


def run_france_monthly_pipeline(
    monthly_files: Iterable[MonthlyFile],
    mapper: CategoryMapper,
    population: PopulationReference,
    session_factory: sessionmaker | None,
    options: PipelineOptions | None = None,
) -> PipelineRunResult:
    options = options or PipelineOptions()
    logger.info(f"Starting France monthly pipeline (source={options.data_source_code}, dry_run={options.dry_run})")

    aggregation = aggregate_to_yearly(
        monthly_files,
        mapper,
        AggregatorOptions(
            min_months_required=options.min_months_required,
            extrapolate_partial_years=options.extrapolate_partial_years,
        ),
    )

    enrichment = RateEnricher(
        population,
        EnricherOptions(
            skip_missing_population=options.skip_missing_population,
            fallback_year=options.fallback_year,
        ),
    ).enrich(aggregation.aggregates)

    result = PipelineRunResult(
        data_source_code=options.data_source_code,
        dry_run=options.dry_run,
        aggregation=aggregation.statistics,
        enrichment=enrichment.statistics,
        warnings=aggregation.warnings + enrichment.warnings,
    )

    if options.dry_run:
        logger.info(f"Dry run: {len(enrichment.records)} records ready, nothing written")
        return result

    if session_factory is None:
        raise ValueError("session_factory is required unless dry_run is set")

    data_source_id = resolve_data_source_id(session_factory, options.data_source_code)
    if data_source_id is None:
        raise LoaderValidationError([f"Data source not found: {options.data_source_code}"])
    result.data_source_id = data_source_id

    load = load_france_monthly(
        session_factory,
        enrichment.records,
        LoaderOptions(
            data_source_id=data_source_id,
            batch_size=options.batch_size,
            use_transaction=options.use_transaction,
            skip_unresolved_records=options.skip_unresolved_records,
            delete_existing_source=options.delete_existing_source,
            rate_tolerance=options.rate_tolerance,
        ),
    )
    result.load = load
    result.warnings.extend(load.warnings)

    logger.info(
        f"Pipeline finished: {load.inserted} inserted, {load.updated} updated, "
        f"{load.skipped} skipped, {load.failed} failed in {load.duration_ms} ms"
    )
    return result


def format_run_report(result: PipelineRunResult) -> str:
    agg = result.aggregation
    enr = result.enrichment

    lines = [
        "=== France monthly pipeline ===",
        f"Data source: {result.data_source_code}"
        + (f" (id={result.data_source_id})" if result.data_source_id is not None else ""),
        "",
        "Aggregation:",
        f"  Monthly files:  {agg.monthly_files_processed}",
        f"  Rows processed: {agg.total_rows_processed} ({agg.rows_skipped} skipped)",
        f"  Years:          {', '.join(map(str, agg.unique_years)) or '-'}",
        f"  Complete years: {', '.join(map(str, agg.complete_years)) or '-'}",
        f"  Subdivisions:   {agg.unique_subdivisions}",
        f"  Categories:     {agg.unique_categories}",
        "",
        "Enrichment:",
        f"  Records:            {enr.total_records}",
        f"  With rate:          {enr.records_with_rate}",
        f"  Without population: {enr.records_without_population}",
        f"  Skipped:            {enr.records_skipped}",
        "",
    ]

    if result.load is None:
        lines.append("Load: skipped (dry run)" if result.dry_run else "Load: not run")
    else:
        load = result.load
        lines += [
            "Load:",
            f"  Inserted: {load.inserted}",
            f"  Updated:  {load.updated}",
            f"  Skipped:  {load.skipped}",
            f"  Failed:   {load.failed}",
            f"  Duration: {load.duration_ms} ms",
        ]
        if load.unresolved_subdivisions:
            lines.append(f"  Unresolved subdivisions: {', '.join(load.unresolved_subdivisions)}")
        if load.unresolved_categories:
            lines.append(f"  Unresolved categories: {', '.join(load.unresolved_categories)}")

    if result.warnings:
        lines += ["", f"Warnings ({len(result.warnings)}):"]
        lines += [f"  - {w}" for w in result.warnings]

    return "\n".join(lines)
