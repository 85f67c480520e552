from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from src.crimestat_pipeline.core.database import Base

class AdministrativeArea(Base):
    __tablename__ = "administrative_areas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 01-95, 2A, 2B, 971-976 for départements
    code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="department", index=True)

    populations = relationship("Population", back_populates="area", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("code", "level", name="uq_areas_code_level"),
    )


class Population(Base):
    __tablename__ = "population"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    area_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("administrative_areas.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    population_count: Mapped[int] = mapped_column(Integer, nullable=False)

    area = relationship("AdministrativeArea", back_populates="populations")

    __table_args__ = (
        UniqueConstraint("area_id", "year", name="uq_population_area_year"),
    )
