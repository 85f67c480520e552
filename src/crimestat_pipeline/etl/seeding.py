"""
Reference data seeding: canonical categories, data sources, subdivisions
and their populations. All upserts are idempotent.
"""
from pathlib import Path

import pandas as pd
import yaml
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.subdivisions import is_valid_subdivision_code, normalize_subdivision_code
from src.crimestat_pipeline.models import AdministrativeArea, CrimeCategory, DataSource, Population
from src.crimestat_pipeline.schemas.category import CanonicalCategory

logger = get_logger(__name__)


def load_reference_yaml(yaml_path: Path) -> dict:
    if not yaml_path.exists():
        raise FileNotFoundError(f"Reference YAML not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    codes = {c["code"] for c in data.get("categories", [])}
    unknown = codes - {c.value for c in CanonicalCategory}
    if unknown:
        raise ValueError(f"Unknown category codes in {yaml_path}: {', '.join(sorted(unknown))}")
    return data


def upsert_categories(db: Session, items: list[dict]) -> int:
    new_count = 0
    for it in items:
        existing = db.execute(
            select(CrimeCategory).where(CrimeCategory.code == it["code"])
        ).scalar_one_or_none()

        if existing:
            existing.name = it["name"]
            existing.description = it.get("description")
        else:
            db.add(CrimeCategory(code=it["code"], name=it["name"], description=it.get("description")))
            new_count += 1
    return new_count


def upsert_data_sources(db: Session, items: list[dict]) -> int:
    new_count = 0
    for it in items:
        existing = db.execute(
            select(DataSource).where(DataSource.code == it["code"])
        ).scalar_one_or_none()

        if existing:
            existing.name = it["name"]
            existing.url = it.get("url")
        else:
            db.add(DataSource(code=it["code"], name=it["name"], url=it.get("url")))
            new_count += 1
    return new_count


def seed_reference_data(session_factory: sessionmaker, yaml_path: Path) -> tuple[int, int]:
    data = load_reference_yaml(yaml_path)
    categories = data.get("categories", [])
    sources = data.get("data_sources", [])
    logger.info(f"Loaded {len(categories)} categories and {len(sources)} data sources from {yaml_path}")

    with session_factory() as db:
        new_categories = upsert_categories(db, categories)
        new_sources = upsert_data_sources(db, sources)
        db.commit()

    logger.info(f"Done. new_categories={new_categories} new_data_sources={new_sources}")
    return new_categories, new_sources


def seed_areas_from_csv(session_factory: sessionmaker, csv_path: Path, level: str = "department") -> tuple[int, int]:
    """
    Upserts subdivisions and yearly populations from a CSV with columns
    code, year, population and optionally name.
    """
    df = pd.read_csv(csv_path, dtype={"code": str})
    missing = {"code", "year", "population"} - set(df.columns)
    if missing:
        raise ValueError(f"Population CSV missing columns: {', '.join(sorted(missing))}")

    df = df.dropna(subset=["code", "year", "population"])
    df["code"] = df["code"].map(normalize_subdivision_code)
    df = df[df["code"].map(is_valid_subdivision_code)].copy()
    if "name" not in df.columns:
        df["name"] = df["code"]

    new_areas = 0
    upserted_populations = 0

    with session_factory() as db:
        area_ids: dict[str, int] = {}
        for code, name in df.drop_duplicates("code")[["code", "name"]].itertuples(index=False):
            area = db.execute(
                select(AdministrativeArea)
                .where(AdministrativeArea.code == code)
                .where(AdministrativeArea.level == level)
            ).scalar_one_or_none()
            if area is None:
                area = AdministrativeArea(code=code, name=str(name), level=level)
                db.add(area)
                db.flush()
                new_areas += 1
            area_ids[code] = area.id

        for r in df.itertuples(index=False):
            area_id = area_ids[r.code]
            year = int(r.year)
            existing = db.execute(
                select(Population)
                .where(Population.area_id == area_id)
                .where(Population.year == year)
            ).scalar_one_or_none()
            if existing:
                existing.population_count = int(r.population)
            else:
                db.add(Population(area_id=area_id, year=year, population_count=int(r.population)))
            upserted_populations += 1

        db.commit()

    logger.info(f"Done. new_areas={new_areas} populations_upserted={upserted_populations}")
    return new_areas, upserted_populations
