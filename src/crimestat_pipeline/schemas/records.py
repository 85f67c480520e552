from typing import NamedTuple
from pydantic import BaseModel, ConfigDict, Field

from src.crimestat_pipeline.schemas.category import CanonicalCategory

ALL_MONTHS = frozenset(range(1, 13))


class MonthlyRow(BaseModel):
    """One parsed État 4001 row: a source category with counts per subdivision."""

    model_config = ConfigDict(frozen=True)

    source_index: int
    category_label: str = ""
    metropolitan_total: int = 0
    counts_by_subdivision: dict[str, int] = Field(default_factory=dict)


class MonthlyFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    rows: list[MonthlyRow]
    year: int
    month: int
    source: str = ""


class AggregationKey(NamedTuple):
    """
    (year, subdivision, category). Field order gives the output sort order.
    """

    year: int
    subdivision_code: str
    category: CanonicalCategory


class _CoverageMixin:
    """Completeness attributes derived from months_present."""

    @property
    def months_with_data(self) -> int:
        return len(self.months_present)

    @property
    def is_complete(self) -> bool:
        return self.months_with_data == 12

    @property
    def missing_months(self) -> list[int]:
        return sorted(ALL_MONTHS - self.months_present)


class YearlyAggregate(_CoverageMixin, BaseModel):
    model_config = ConfigDict(frozen=True)

    subdivision_code: str
    category: CanonicalCategory
    year: int
    count: int
    months_present: frozenset[int]
    source_indices: tuple[int, ...]
    extrapolated: bool = False

    @property
    def key(self) -> AggregationKey:
        return AggregationKey(self.year, self.subdivision_code, self.category)


class EnrichedRecord(_CoverageMixin, BaseModel):
    """
    A yearly aggregate with its rate. area_id / category_id stay None here;
    the loader resolves them.
    """

    model_config = ConfigDict(frozen=True)

    subdivision_code: str
    category: CanonicalCategory
    year: int
    count: int
    months_present: frozenset[int]
    source_indices: tuple[int, ...]
    rate_per_100k: float | None = None
    population_used: int | None = None
    notes: str | None = None
    area_id: int | None = None
    category_id: int | None = None

    @property
    def key(self) -> AggregationKey:
        return AggregationKey(self.year, self.subdivision_code, self.category)


# --- Stage options ---

class AggregatorOptions(BaseModel):
    min_months_required: int = 1
    extrapolate_partial_years: bool = False


class EnricherOptions(BaseModel):
    skip_missing_population: bool = False
    fallback_year: int | None = 2024


class LoaderOptions(BaseModel):
    data_source_id: int
    batch_size: int = 500
    use_transaction: bool = True
    skip_unresolved_records: bool = False
    delete_existing_source: bool = False
    rate_tolerance: float = 0.0001


# --- Stage results ---

class PartialYear(BaseModel):
    year: int
    months_present: list[int]


class AggregationStatistics(BaseModel):
    monthly_files_processed: int = 0
    total_rows_processed: int = 0
    rows_skipped: int = 0
    unique_years: list[int] = Field(default_factory=list)
    unique_subdivisions: int = 0
    unique_categories: int = 0
    complete_years: list[int] = Field(default_factory=list)
    partial_years: list[PartialYear] = Field(default_factory=list)


class AggregationResult(BaseModel):
    aggregates: list[YearlyAggregate]
    statistics: AggregationStatistics
    warnings: list[str]


class MissingPopulation(BaseModel):
    subdivision_code: str
    year: int


class EnrichmentStatistics(BaseModel):
    total_records: int = 0
    records_with_rate: int = 0
    records_without_population: int = 0
    records_skipped: int = 0
    unique_subdivisions: int = 0
    unique_years: list[int] = Field(default_factory=list)
    missing_population_subdivisions: list[str] = Field(default_factory=list)
    missing_population_details: list[MissingPopulation] = Field(default_factory=list)


class EnrichmentResult(BaseModel):
    records: list[EnrichedRecord]
    statistics: EnrichmentStatistics
    warnings: list[str]


class LoadErrorDetail(BaseModel):
    row_index: int
    message: str


class LoadResult(BaseModel):
    total_records: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    areas: int = 0
    categories: int = 0
    years: list[int] = Field(default_factory=list)
    unresolved_subdivisions: list[str] = Field(default_factory=list)
    unresolved_categories: list[str] = Field(default_factory=list)
    errors: list[LoadErrorDetail] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0


class LoaderValidation(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
