from pathlib import Path

import pytest
from sqlalchemy import func, select

from src.crimestat_pipeline.etl.seeding import load_reference_yaml, seed_areas_from_csv, seed_reference_data
from src.crimestat_pipeline.models import AdministrativeArea, CrimeCategory, DataSource, Population
from src.crimestat_pipeline.schemas.category import CanonicalCategory

CATEGORIES_YAML = Path(__file__).resolve().parents[1] / "config" / "categories.yaml"


def _count(session_factory, model):
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model))


def test_reference_yaml_lists_all_canonical_categories():
    data = load_reference_yaml(CATEGORIES_YAML)
    assert {c["code"] for c in data["categories"]} == {c.value for c in CanonicalCategory}
    assert data["data_sources"][0]["code"] == "ETAT4001_MONTHLY"


def test_seed_reference_data_is_idempotent(session_factory):
    assert seed_reference_data(session_factory, CATEGORIES_YAML) == (20, 1)
    assert seed_reference_data(session_factory, CATEGORIES_YAML) == (0, 0)
    assert _count(session_factory, CrimeCategory) == 20
    assert _count(session_factory, DataSource) == 1


def test_unknown_category_code_rejected(tmp_path):
    path = tmp_path / "categories.yaml"
    path.write_text("categories:\n  - code: PIRACY\n    name: Piracy\n")
    with pytest.raises(ValueError, match="PIRACY"):
        load_reference_yaml(path)


def test_seed_areas_from_csv(session_factory, tmp_path):
    path = tmp_path / "population.csv"
    path.write_text(
        "code,year,population,name\n"
        "1,2022,650000,Ain\n"
        "1,2023,660000,Ain\n"
        "2a,2023,160000,Corse-du-Sud\n"
        "20,2023,1,Corse\n"
    )

    assert seed_areas_from_csv(session_factory, path) == (2, 3)
    # rerun updates in place
    assert seed_areas_from_csv(session_factory, path) == (0, 3)

    assert _count(session_factory, AdministrativeArea) == 2
    assert _count(session_factory, Population) == 3
    with session_factory() as db:
        area = db.execute(select(AdministrativeArea).where(AdministrativeArea.code == "01")).scalar_one()
        assert area.name == "Ain"
        assert area.level == "department"
