import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.crimestat_pipeline.core.database import Base
from src.crimestat_pipeline.etl.category_mapper import build_etat4001_mapper
from src.crimestat_pipeline.etl.population import InMemoryPopulationReference
from src.crimestat_pipeline.etl.seeding import upsert_categories, upsert_data_sources
from src.crimestat_pipeline.models import AdministrativeArea, DataSource, Population
from src.crimestat_pipeline.schemas.category import CanonicalCategory
from src.crimestat_pipeline.schemas.records import MonthlyFile, MonthlyRow

SOURCE_CODE = "ETAT4001_MONTHLY"

POPULATIONS = {
    "75": {2022: 2_100_000, 2023: 2_090_000},
    "13": {2023: 2_050_000},
    "2A": {2023: 160_000},
    "974": {2021: 870_000},
}


def make_row(index: int, counts: dict[str, int], label: str = "") -> MonthlyRow:
    return MonthlyRow(
        source_index=index,
        category_label=label or f"index {index}",
        metropolitan_total=sum(counts.values()),
        counts_by_subdivision=counts,
    )


def make_monthly(year: int, month: int, rows: list[MonthlyRow]) -> MonthlyFile:
    return MonthlyFile(rows=rows, year=year, month=month, source=f"test-{year}-{month:02d}")


@pytest.fixture
def mapper():
    return build_etat4001_mapper()


@pytest.fixture
def population():
    return InMemoryPopulationReference(POPULATIONS)


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across sessions via StaticPool."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def seeded(session_factory):
    """Areas with populations, the 20 categories and the monthly data source."""
    with session_factory() as db:
        upsert_categories(db, [{"code": c.value, "name": c.value.title()} for c in CanonicalCategory])
        upsert_data_sources(db, [{"code": SOURCE_CODE, "name": "État 4001 monthly"}])

        for code, years in POPULATIONS.items():
            area = AdministrativeArea(code=code, name=f"Département {code}", level="department")
            db.add(area)
            db.flush()
            for year, count in years.items():
                db.add(Population(area_id=area.id, year=year, population_count=count))
        db.commit()

        data_source_id = db.query(DataSource.id).filter(DataSource.code == SOURCE_CODE).scalar()

    return {"session_factory": session_factory, "data_source_id": data_source_id}


@pytest.fixture
def sample_year():
    """Twelve months of 2023 for Paris and Marseille, homicides and burglaries."""
    files = []
    for month in range(1, 13):
        files.append(make_monthly(2023, month, [
            make_row(1, {"75": 1, "13": 2}),
            make_row(27, {"75": 10, "13": 5}),
        ]))
    return files
