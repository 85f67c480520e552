from src.crimestat_pipeline.etl.category_mapper import (
    CategoryMapper,
    TOTAL_INDICES,
    UNUSED_INDICES,
    build_etat4001_mapper,
)
from src.crimestat_pipeline.schemas.category import CanonicalCategory, ClassificationEntry


def test_every_index_is_either_mapped_or_unused(mapper):
    mapped = set()
    unused = set()
    for index in range(1, TOTAL_INDICES + 1):
        assert mapper.has_mapping(index) != mapper.is_unused(index), index
        (mapped if mapper.has_mapping(index) else unused).add(index)

    assert mapped | unused == set(range(1, TOTAL_INDICES + 1))
    assert not mapped & unused
    assert unused == {96, 97, 99, 100}


def test_lookup_mapped_unused_and_unknown(mapper):
    found = mapper.lookup(1)
    assert found.found
    assert found.canonical_code == CanonicalCategory.HOMICIDE
    assert found.label == "Règlements de compte entre malfaiteurs"

    unused = mapper.lookup(96)
    assert not unused.found
    assert unused.is_unused
    assert unused.canonical_code is None

    unknown = mapper.lookup(500)
    assert not unknown.found
    assert not unknown.is_unused
    assert mapper.get_canonical_code(500) is None


def test_homicide_indices(mapper):
    assert mapper.get_indices_for_category(CanonicalCategory.HOMICIDE) == [1, 2, 3, 51]
    assert mapper.get_indices_for_category("HOMICIDE") == [1, 2, 3, 51]
    entries = mapper.get_mappings_for_category(CanonicalCategory.HOMICIDE)
    assert [e.source_index for e in entries] == [1, 2, 3, 51]
    assert mapper.get_mapping_entry(51).canonical_code == CanonicalCategory.HOMICIDE
    assert mapper.get_mapping_entry(96) is None


def test_returned_lists_are_copies(mapper):
    mapper.get_indices_for_category(CanonicalCategory.HOMICIDE).append(999)
    mapper.get_all_mappings().clear()

    assert mapper.get_indices_for_category(CanonicalCategory.HOMICIDE) == [1, 2, 3, 51]
    assert len(mapper.get_all_mappings()) == 103


def test_statistics(mapper):
    stats = mapper.get_statistics()
    assert stats.total_indices == 107
    assert stats.active_indices == 103
    assert stats.unused_indices == 4
    assert stats.empty_categories == [CanonicalCategory.DOMESTIC_VIOLENCE]
    assert stats.indices_per_category[CanonicalCategory.HOMICIDE] == 4
    assert sum(stats.indices_per_category.values()) == 103
    assert len(stats.indices_per_category) == 20


def test_validate_builtin_table(mapper):
    result = mapper.validate()
    assert result.valid
    assert result.errors == []
    assert len(result.warnings) == 1
    assert "DOMESTIC_VIOLENCE" in result.warnings[0]


def test_validate_reports_double_classification():
    entries = [
        ClassificationEntry(source_index=1, source_label="a", canonical_code=CanonicalCategory.HOMICIDE),
        ClassificationEntry(source_index=1, source_label="b", canonical_code=CanonicalCategory.ASSAULT),
        ClassificationEntry(source_index=2, source_label="c", canonical_code=CanonicalCategory.OTHER),
    ]
    mapper = CategoryMapper(entries, unused_indices={2}, total_indices=3)
    result = mapper.validate()

    assert not result.valid
    assert "Index 1 is mapped 2 times" in result.errors
    assert "Index 2 is both mapped and marked as unused" in result.errors
    assert "Index 3 is neither mapped nor marked as unused" in result.errors
    # first entry wins on lookup
    assert mapper.get_canonical_code(1) == CanonicalCategory.HOMICIDE


def test_validate_warns_on_active_count_mismatch():
    entries = [
        ClassificationEntry(source_index=i, source_label=str(i), canonical_code=code)
        for i, code in enumerate(CanonicalCategory, start=1)
        if code != CanonicalCategory.DOMESTIC_VIOLENCE
    ]
    mapper = CategoryMapper(entries, unused_indices=set(), total_indices=25)
    result = mapper.validate()

    assert "Expected 25 active mappings, found 19" in result.warnings
    assert not result.valid  # 20..25 uncovered


def test_empty_category_other_than_domestic_violence_is_error():
    entries = [
        ClassificationEntry(source_index=1, source_label="a", canonical_code=CanonicalCategory.HOMICIDE),
    ]
    result = CategoryMapper(entries, unused_indices=set(), total_indices=1).validate()
    assert "Canonical category ARSON has no État 4001 mappings" in result.errors


def test_mappers_are_independent_values():
    a = build_etat4001_mapper()
    b = build_etat4001_mapper()
    assert a is not b
    assert a.get_all_mappings() == b.get_all_mappings()
    assert UNUSED_INDICES == frozenset({96, 97, 99, 100})


def test_summary_report(mapper):
    report = mapper.summary_report()
    assert "Total Indices: 107" in report
    assert "Active (Mapped): 103" in report
    assert "DOMESTIC_VIOLENCE: (none)" in report
    assert "--- Categories with No Mappings ---" in report
