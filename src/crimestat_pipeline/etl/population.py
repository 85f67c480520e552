"""
Population references used by the rate enricher.

Any object with `get(code, year)` and `known_years(code)` can serve as a
reference; two are provided here, an in-memory one (optionally read from
an INSEE-style CSV) and one backed by the `population` table.
"""
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Mapping, Protocol

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.subdivisions import normalize_subdivision_code
from src.crimestat_pipeline.models import AdministrativeArea, Population

logger = get_logger(__name__)


class PopulationReference(Protocol):
    def get(self, code: str, year: int) -> int | None:
        ...

    def known_years(self, code: str) -> list[int]:
        ...


class InMemoryPopulationReference:
    def __init__(self, data: Mapping[str, Mapping[int, int]]):
        self._data: dict[str, dict[int, int]] = {
            code: {int(y): int(p) for y, p in years.items()}
            for code, years in data.items()
        }

    @classmethod
    def from_csv(cls, path: str | Path) -> "InMemoryPopulationReference":
        """
        Expects columns: code, year, population (whole persons).
        """
        df = pd.read_csv(path, dtype={"code": str})
        missing = {"code", "year", "population"} - set(df.columns)
        if missing:
            raise ValueError(f"Population CSV missing columns: {', '.join(sorted(missing))}")

        df = df.dropna(subset=["code", "year", "population"])
        df["code"] = df["code"].map(normalize_subdivision_code)
        df["year"] = pd.to_numeric(df["year"], errors="coerce")
        df["population"] = pd.to_numeric(df["population"], errors="coerce")
        df = df.dropna(subset=["year", "population"])

        data: dict[str, dict[int, int]] = defaultdict(dict)
        for r in df.itertuples(index=False):
            data[r.code][int(r.year)] = int(r.population)

        logger.info(f"Loaded population for {len(data)} subdivisions from {path}")
        return cls(data)

    def get(self, code: str, year: int) -> int | None:
        return self._data.get(code, {}).get(year)

    def known_years(self, code: str) -> list[int]:
        return sorted(self._data.get(code, {}))


class DatabasePopulationReference:
    """
    Reads `population` joined to `administrative_areas` in one query for
    the requested subdivision codes, then serves lookups from memory.
    """

    def __init__(self, session: Session, codes: Iterable[str], level: str = "department"):
        codes = sorted(set(codes))
        self._data: dict[str, dict[int, int]] = defaultdict(dict)

        if codes:
            stmt = (
                select(AdministrativeArea.code, Population.year, Population.population_count)
                .join(Population, Population.area_id == AdministrativeArea.id)
                .where(AdministrativeArea.code.in_(codes))
                .where(AdministrativeArea.level == level)
            )
            rows = session.execute(stmt).all()
            for code, year, count in rows:
                self._data[code][year] = count
            logger.debug(f"Preloaded {len(rows)} population records from database")

    def get(self, code: str, year: int) -> int | None:
        return self._data.get(code, {}).get(year)

    def known_years(self, code: str) -> list[int]:
        return sorted(self._data.get(code, {}))
