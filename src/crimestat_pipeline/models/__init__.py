from .area import AdministrativeArea, Population
from .category import CrimeCategory
from .data_source import DataSource
from .observation import CrimeObservation, GRANULARITIES

__all__ = [
    "AdministrativeArea",
    "Population",
    "CrimeCategory",
    "DataSource",
    "CrimeObservation",
    "GRANULARITIES",
]
