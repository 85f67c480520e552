"""
Rate enrichment: joins yearly aggregates with a population reference and
computes rate_per_100k.
"""
from typing import Iterable, NamedTuple

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.population import PopulationReference
from src.crimestat_pipeline.etl.rates import calculate_rate_per_100k
from src.crimestat_pipeline.schemas.records import (
    EnrichedRecord,
    EnricherOptions,
    EnrichmentResult,
    EnrichmentStatistics,
    MissingPopulation,
    YearlyAggregate,
)

logger = get_logger(__name__)

NO_POPULATION_NOTE = "No population data available for rate calculation."


class PopulationLookup(NamedTuple):
    population: int | None
    fallback_year: int | None = None


def resolve_population(
    reference: PopulationReference,
    code: str,
    year: int,
    fallback_year: int | None,
) -> PopulationLookup:
    """
    Exact year, then the configured fallback year, then the most recent
    known year. None when the subdivision is unknown.
    """
    exact = reference.get(code, year)
    if exact is not None:
        return PopulationLookup(exact)

    if fallback_year is not None:
        fallback = reference.get(code, fallback_year)
        if fallback is not None:
            return PopulationLookup(fallback, fallback_year)

    known = sorted(reference.known_years(code), reverse=True)
    if known:
        return PopulationLookup(reference.get(code, known[0]), known[0])

    return PopulationLookup(None)


class RateEnricher:
    def __init__(self, population: PopulationReference, options: EnricherOptions | None = None):
        self.population = population
        self.options = options or EnricherOptions()

    def enrich(self, aggregates: Iterable[YearlyAggregate]) -> EnrichmentResult:
        aggregates = list(aggregates)
        warnings: list[str] = []
        records: list[EnrichedRecord] = []

        # scoped to this call
        cache: dict[tuple[str, int], PopulationLookup] = {}

        with_rate = 0
        without_population = 0
        skipped = 0
        missing_codes: set[str] = set()
        missing_pairs: set[tuple[str, int]] = set()

        logger.info(f"Enriching {len(aggregates)} yearly aggregates with rate calculations")

        for agg in aggregates:
            cache_key = (agg.subdivision_code, agg.year)
            if cache_key not in cache:
                cache[cache_key] = resolve_population(
                    self.population, agg.subdivision_code, agg.year, self.options.fallback_year
                )
            lookup = cache[cache_key]

            fields = dict(
                subdivision_code=agg.subdivision_code,
                category=agg.category,
                year=agg.year,
                count=agg.count,
                months_present=agg.months_present,
                source_indices=agg.source_indices,
            )

            if lookup.population is not None and lookup.population > 0:
                notes = None
                if lookup.fallback_year is not None:
                    notes = f"Population from fallback year {lookup.fallback_year}"
                records.append(
                    EnrichedRecord(
                        **fields,
                        rate_per_100k=calculate_rate_per_100k(agg.count, lookup.population),
                        population_used=lookup.population,
                        notes=notes,
                    )
                )
                with_rate += 1
                continue

            without_population += 1
            missing_codes.add(agg.subdivision_code)
            missing_pairs.add(cache_key)

            if self.options.skip_missing_population:
                skipped += 1
                continue

            records.append(EnrichedRecord(**fields, notes=NO_POPULATION_NOTE))

        statistics = EnrichmentStatistics(
            total_records=len(aggregates),
            records_with_rate=with_rate,
            records_without_population=without_population,
            records_skipped=skipped,
            unique_subdivisions=len({a.subdivision_code for a in aggregates}),
            unique_years=sorted({a.year for a in aggregates}),
            missing_population_subdivisions=sorted(missing_codes),
            missing_population_details=[
                MissingPopulation(subdivision_code=c, year=y) for c, y in sorted(missing_pairs)
            ],
        )

        logger.info(f"Rate enrichment complete: {with_rate}/{len(aggregates)} records have rates")

        if missing_codes:
            logger.warning(
                f"{without_population} records missing population data "
                f"({len(missing_codes)} subdivisions)"
            )
            shown = sorted(missing_codes)
            warnings.append(
                f"Missing population data for {len(shown)} subdivisions: "
                f"{', '.join(shown[:5])}{'...' if len(shown) > 5 else ''}"
            )

        return EnrichmentResult(records=records, statistics=statistics, warnings=warnings)
