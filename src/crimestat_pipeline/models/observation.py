from sqlalchemy import (
    Column, Integer, BigInteger, String, ForeignKey, Boolean,
    Numeric, DateTime, func, Index, UniqueConstraint, CheckConstraint
)
from src.crimestat_pipeline.core.database import Base

GRANULARITIES = ("monthly", "quarterly", "yearly")


class CrimeObservation(Base):
    __tablename__ = "crime_observations"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    area_id = Column(Integer, ForeignKey("administrative_areas.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("crime_categories.id", ondelete="CASCADE"), nullable=False, index=True)
    data_source_id = Column(Integer, ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False, index=True)

    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=True)  # NULL for yearly rows
    granularity = Column(String(16), nullable=False, default="yearly")

    count = Column(Integer, nullable=False)
    rate_per_100k = Column(Numeric(12, 4), nullable=True)
    population_used = Column(Integer, nullable=True)
    is_validated = Column(Boolean, nullable=False, default=False)
    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "area_id", "category_id", "data_source_id", "year", "month",
            name="uq_obs_area_category_source_period",
        ),
        CheckConstraint(
            "granularity IN ('monthly', 'quarterly', 'yearly')",
            name="ck_obs_granularity",
        ),
        Index("ix_obs_area_category_year_source", "area_id", "category_id", "year", "data_source_id"),
    )
