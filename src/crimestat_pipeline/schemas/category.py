from enum import Enum
from pydantic import BaseModel, ConfigDict


class CanonicalCategory(str, Enum):
    """The 20 canonical crime categories used for cross-dataset comparison."""

    HOMICIDE = "HOMICIDE"
    ATTEMPTED_HOMICIDE = "ATTEMPTED_HOMICIDE"
    ASSAULT = "ASSAULT"
    SEXUAL_VIOLENCE = "SEXUAL_VIOLENCE"
    HUMAN_TRAFFICKING = "HUMAN_TRAFFICKING"
    KIDNAPPING = "KIDNAPPING"
    ARMED_ROBBERY = "ARMED_ROBBERY"
    ROBBERY = "ROBBERY"
    BURGLARY_RESIDENTIAL = "BURGLARY_RESIDENTIAL"
    BURGLARY_COMMERCIAL = "BURGLARY_COMMERCIAL"
    VEHICLE_THEFT = "VEHICLE_THEFT"
    THEFT_OTHER = "THEFT_OTHER"
    DRUG_TRAFFICKING = "DRUG_TRAFFICKING"
    DRUG_USE = "DRUG_USE"
    ARSON = "ARSON"
    VANDALISM = "VANDALISM"
    FRAUD = "FRAUD"
    CHILD_ABUSE = "CHILD_ABUSE"
    DOMESTIC_VIOLENCE = "DOMESTIC_VIOLENCE"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


class ClassificationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_index: int
    source_label: str
    canonical_code: CanonicalCategory
    note: str | None = None


class CategoryLookup(BaseModel):
    model_config = ConfigDict(frozen=True)

    found: bool
    canonical_code: CanonicalCategory | None = None
    label: str | None = None
    is_unused: bool = False
    note: str | None = None


class MappingStatistics(BaseModel):
    total_indices: int
    active_indices: int
    unused_indices: int
    indices_per_category: dict[CanonicalCategory, int]
    empty_categories: list[CanonicalCategory]


class MapperValidation(BaseModel):
    valid: bool
    warnings: list[str]
    errors: list[str]
