"""
Crime observation loader.

Persists enriched records into crime_observations with upsert semantics:
same (area, category, data source, year, month) -> update if the values
changed, skip if they did not, insert otherwise.
"""
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import delete, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.crimestat_pipeline.core.exceptions import (
    LoaderStateError,
    LoaderValidationError,
    PersistenceError,
    UnresolvedForeignKeyError,
)
from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.models import AdministrativeArea, CrimeCategory, CrimeObservation, DataSource
from src.crimestat_pipeline.schemas.records import (
    EnrichedRecord,
    LoadErrorDetail,
    LoaderOptions,
    LoaderValidation,
    LoadResult,
)

logger = get_logger(__name__)

SUBDIVISION_LEVEL = "department"


@dataclass
class ResolvedIds:
    area_ids: dict[str, int] = field(default_factory=dict)
    category_ids: dict[str, int] = field(default_factory=dict)
    unresolved_subdivisions: list[str] = field(default_factory=list)
    unresolved_categories: list[str] = field(default_factory=list)


def _rate_changed(old, new: float | None, tolerance: float) -> bool:
    if old is None or new is None:
        return (old is None) != (new is None)
    return abs(float(old) - new) > tolerance


class FranceMonthlyLoader:
    def __init__(self, session_factory: sessionmaker, options: LoaderOptions):
        self.session_factory = session_factory
        self.options = options
        self.resolved: ResolvedIds | None = None

    # --- Resolution phase ---

    def preload_foreign_keys(self, records: Iterable[EnrichedRecord]) -> ResolvedIds:
        subdivision_codes: set[str] = set()
        category_codes: set[str] = set()
        for r in records:
            subdivision_codes.add(r.subdivision_code)
            category_codes.add(r.category.value)

        logger.info(
            f"Preloading FKs for {len(subdivision_codes)} subdivisions and {len(category_codes)} categories"
        )

        resolved = ResolvedIds()
        with self.session_factory() as db:
            if subdivision_codes:
                rows = db.execute(
                    select(AdministrativeArea.code, AdministrativeArea.id)
                    .where(AdministrativeArea.code.in_(sorted(subdivision_codes)))
                    .where(AdministrativeArea.level == SUBDIVISION_LEVEL)
                ).all()
                resolved.area_ids = {code: id_ for code, id_ in rows}

            if category_codes:
                rows = db.execute(
                    select(CrimeCategory.code, CrimeCategory.id)
                    .where(CrimeCategory.code.in_(sorted(category_codes)))
                ).all()
                resolved.category_ids = {code: id_ for code, id_ in rows}

        resolved.unresolved_subdivisions = sorted(subdivision_codes - resolved.area_ids.keys())
        resolved.unresolved_categories = sorted(category_codes - resolved.category_ids.keys())

        logger.debug(f"Loaded {len(resolved.area_ids)}/{len(subdivision_codes)} area IDs")
        logger.debug(f"Loaded {len(resolved.category_ids)}/{len(category_codes)} category IDs")

        if resolved.unresolved_subdivisions:
            logger.warning(f"Unresolved subdivision codes: {', '.join(resolved.unresolved_subdivisions)}")
        if resolved.unresolved_categories:
            logger.warning(f"Unresolved category codes: {', '.join(resolved.unresolved_categories)}")

        self.resolved = resolved
        return resolved

    # --- Supporting operations ---

    def delete_existing_records(self, data_source_id: int | None = None) -> int:
        source_id = self.options.data_source_id if data_source_id is None else data_source_id
        logger.info(f"Deleting existing records for data source: {source_id}")

        with self.session_factory() as db:
            res = db.execute(delete(CrimeObservation).where(CrimeObservation.data_source_id == source_id))
            db.commit()

        deleted = res.rowcount or 0
        logger.info(f"Deleted {deleted} existing records")
        return deleted

    def validate(self) -> LoaderValidation:
        errors: list[str] = []

        with self.session_factory() as db:
            try:
                if not inspect(db.get_bind()).has_table(CrimeObservation.__tablename__):
                    errors.append(f"{CrimeObservation.__tablename__} table does not exist")
            except SQLAlchemyError as e:
                errors.append(f"Cannot validate {CrimeObservation.__tablename__} table: {e}")

            try:
                if db.get(DataSource, self.options.data_source_id) is None:
                    errors.append(f"Data source not found: {self.options.data_source_id}")

                n_areas = db.scalar(
                    select(func.count()).select_from(AdministrativeArea)
                    .where(AdministrativeArea.level == SUBDIVISION_LEVEL)
                )
                if not n_areas:
                    errors.append("No subdivision records in administrative_areas")

                n_categories = db.scalar(select(func.count()).select_from(CrimeCategory))
                if not n_categories:
                    errors.append("No records in crime_categories")
            except SQLAlchemyError as e:
                errors.append(f"Cannot validate reference tables: {e}")

        for error in errors:
            logger.error(f"Validation error: {error}")

        return LoaderValidation(valid=not errors, errors=errors)

    # --- Load phase ---

    def load(self, records: Iterable[EnrichedRecord]) -> LoadResult:
        if self.resolved is None:
            raise LoaderStateError("Foreign keys not preloaded. Call preload_foreign_keys() first.")

        records = list(records)
        started = time.perf_counter()
        result = LoadResult(
            total_records=len(records),
            areas=len(self.resolved.area_ids),
            categories=len(self.resolved.category_ids),
            unresolved_subdivisions=list(self.resolved.unresolved_subdivisions),
            unresolved_categories=list(self.resolved.unresolved_categories),
        )
        years: set[int] = set()

        batch_size = max(1, self.options.batch_size)
        total_batches = (len(records) + batch_size - 1) // batch_size

        with self.session_factory() as db:
            for start in range(0, len(records), batch_size):
                batch = records[start:start + batch_size]
                logger.debug(f"Loading batch {start // batch_size + 1}/{total_batches}")

                if self.options.use_transaction:
                    try:
                        self._load_batch(db, batch, start, result, years)
                    except (PersistenceError, UnresolvedForeignKeyError) as e:
                        e.result = self._finish(result, years, started)
                        raise
                else:
                    self._load_batch_autocommit(db, batch, start, result, years)

        self._finish(result, years, started)
        logger.info(
            f"Loaded {result.inserted} inserted, {result.updated} updated, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _finish(self, result: LoadResult, years: set[int], started: float) -> LoadResult:
        result.years = sorted(years)
        result.duration_ms = int((time.perf_counter() - started) * 1000)
        return result

    def _load_batch(self, db: Session, batch: list[EnrichedRecord], start: int,
                    result: LoadResult, years: set[int]) -> None:
        """One commit per batch; a failure rolls the whole batch back and aborts the load."""
        counts: Counter = Counter()
        try:
            for record in batch:
                counts[self._load_record(db, record)] += 1
            db.commit()
        except UnresolvedForeignKeyError as e:
            db.rollback()
            result.failed += len(batch)
            result.errors.append(LoadErrorDetail(row_index=start, message=str(e)))
            logger.error(f"Batch starting at row {start} aborted, rolled back: {e}")
            raise
        except SQLAlchemyError as e:
            db.rollback()
            result.failed += len(batch)
            result.errors.append(LoadErrorDetail(row_index=start, message=str(e)))
            logger.error(f"Batch starting at row {start} failed, rolled back: {e}")
            raise PersistenceError(f"Batch starting at row {start} failed: {e}") from e

        result.inserted += counts["inserted"]
        result.updated += counts["updated"]
        result.skipped += counts["skipped"]
        years.update(r.year for r in batch)

    def _load_batch_autocommit(self, db: Session, batch: list[EnrichedRecord], start: int,
                               result: LoadResult, years: set[int]) -> None:
        """Commits every record; a failure is logged and the rest of the batch abandoned."""
        for offset, record in enumerate(batch):
            try:
                outcome = self._load_record(db, record)
                db.commit()
            except (SQLAlchemyError, UnresolvedForeignKeyError) as e:
                db.rollback()
                result.failed += len(batch) - offset
                result.errors.append(LoadErrorDetail(row_index=start + offset, message=str(e)))
                logger.error(f"Batch starting at row {start} failed at row {start + offset}, continuing: {e}")
                return

            setattr(result, outcome, getattr(result, outcome) + 1)
            years.add(record.year)

    def _load_record(self, db: Session, record: EnrichedRecord) -> str:
        area_id = self.resolved.area_ids.get(record.subdivision_code)
        category_id = self.resolved.category_ids.get(record.category.value)

        if area_id is None or category_id is None:
            if self.options.skip_unresolved_records:
                return "skipped"
            missing = []
            if area_id is None:
                missing.append(f"area:{record.subdivision_code}")
            if category_id is None:
                missing.append(f"category:{record.category.value}")
            raise UnresolvedForeignKeyError(missing)

        return self._upsert(db, area_id, category_id, record)

    def _upsert(self, db: Session, area_id: int, category_id: int, record: EnrichedRecord) -> str:
        month = None  # yearly granularity
        existing = db.execute(
            select(CrimeObservation)
            .where(CrimeObservation.area_id == area_id)
            .where(CrimeObservation.category_id == category_id)
            .where(CrimeObservation.data_source_id == self.options.data_source_id)
            .where(CrimeObservation.year == record.year)
            .where(func.coalesce(CrimeObservation.month, 0) == (month or 0))
        ).scalar_one_or_none()

        if existing is not None:
            count_changed = existing.count != record.count
            rate_changed = _rate_changed(existing.rate_per_100k, record.rate_per_100k, self.options.rate_tolerance)
            population_changed = existing.population_used != record.population_used

            if not (count_changed or rate_changed or population_changed):
                return "skipped"

            existing.count = record.count
            existing.rate_per_100k = record.rate_per_100k
            existing.population_used = record.population_used
            existing.is_validated = record.is_complete
            existing.notes = record.notes
            db.flush()
            return "updated"

        db.add(CrimeObservation(
            area_id=area_id,
            category_id=category_id,
            data_source_id=self.options.data_source_id,
            year=record.year,
            month=month,
            granularity="yearly",
            count=record.count,
            rate_per_100k=record.rate_per_100k,
            population_used=record.population_used,
            is_validated=record.is_complete,
            notes=record.notes,
        ))
        db.flush()
        return "inserted"


def load_france_monthly(
    session_factory: sessionmaker,
    records: list[EnrichedRecord],
    options: LoaderOptions,
) -> LoadResult:
    """
    validate -> optional delete -> preload FKs -> load.
    """
    loader = FranceMonthlyLoader(session_factory, options)

    validation = loader.validate()
    if not validation.valid:
        raise LoaderValidationError(validation.errors)

    if options.delete_existing_source:
        loader.delete_existing_records()

    loader.preload_foreign_keys(records)
    return loader.load(records)
