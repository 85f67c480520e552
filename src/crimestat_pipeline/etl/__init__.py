from .category_mapper import CategoryMapper, build_etat4001_mapper
from .aggregator import aggregate_to_yearly, aggregates_to_frame
from .rate_enricher import RateEnricher
from .loader import FranceMonthlyLoader, load_france_monthly
from .monthly_input import read_monthly_csv
from .pipeline import PipelineOptions, run_france_monthly_pipeline, format_run_report

__all__ = [
    "CategoryMapper",
    "build_etat4001_mapper",
    "aggregate_to_yearly",
    "aggregates_to_frame",
    "RateEnricher",
    "FranceMonthlyLoader",
    "load_france_monthly",
    "read_monthly_csv",
    "PipelineOptions",
    "run_france_monthly_pipeline",
    "format_run_report",
]
