"""
État 4001 category mapper.

Maps the 107 legacy État 4001 indices onto the 20 canonical crime
categories. The table is static; a CategoryMapper built from it is an
immutable value passed explicitly to the aggregator.
"""
from collections import Counter
from typing import Iterable

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.schemas.category import (
    CanonicalCategory,
    CategoryLookup,
    ClassificationEntry,
    MappingStatistics,
    MapperValidation,
)

logger = get_logger(__name__)

TOTAL_INDICES = 107
UNUSED_INDICES = frozenset({96, 97, 99, 100})

# Historical État 4001 data never isolated domestic violence.
EXPECTED_EMPTY_CATEGORY = CanonicalCategory.DOMESTIC_VIOLENCE

C = CanonicalCategory

# (index, French label, canonical category, note)
ETAT4001_TABLE: list[tuple[int, str, CanonicalCategory, str]] = [
    # HOMICIDE
    (1, "Règlements de compte entre malfaiteurs", C.HOMICIDE, "Criminal settlements"),
    (2, "Homicides pour voler et à l'occasion de vols", C.HOMICIDE, "During robbery"),
    (3, "Homicides pour d'autres motifs", C.HOMICIDE, "Other motives"),
    (51, "Homicides commis contre enfants de moins de 15 ans", C.HOMICIDE, "Child homicide"),
    # ATTEMPTED_HOMICIDE
    (4, "Tentatives d'homicides pour voler et à l'occasion de vols", C.ATTEMPTED_HOMICIDE, "During robbery"),
    (5, "Tentatives homicides pour d'autres motifs", C.ATTEMPTED_HOMICIDE, "Other motives"),
    (6, "Coups et blessures volontaires suivis de mort", C.ATTEMPTED_HOMICIDE, "Assault resulting in death"),
    # ASSAULT
    (7, "Autres coups et blessures volontaires criminels ou correctionnels", C.ASSAULT, "General assault/battery"),
    (11, "Menaces ou chantages pour extorsion de fonds", C.ASSAULT, "Threats/blackmail for money"),
    (12, "Menaces ou chantages dans un autre but", C.ASSAULT, "Threats/blackmail other"),
    (13, "Atteintes à la dignité et à la personnalité", C.ASSAULT, "Dignity offenses"),
    (73, "Violences à dépositaires de l'autorité", C.ASSAULT, "Violence to authority"),
    # SEXUAL_VIOLENCE
    (46, "Viols sur des majeur(e)s", C.SEXUAL_VIOLENCE, "Rape - adults"),
    (47, "Viols sur des mineur(e)s", C.SEXUAL_VIOLENCE, "Rape - minors"),
    (48, "Harcèlements sexuels et autres agressions sexuelles contre des majeur(e)s", C.SEXUAL_VIOLENCE, "Harassment - adults"),
    (49, "Harcèlements sexuels et autres agressions sexuelles contre des mineur(e)s", C.SEXUAL_VIOLENCE, "Harassment - minors"),
    (50, "Atteintes sexuelles", C.SEXUAL_VIOLENCE, "Sexual assault"),
    # HUMAN_TRAFFICKING
    (45, "Proxénétisme", C.HUMAN_TRAFFICKING, "Pimping/procuring"),
    # KIDNAPPING
    (8, "Prises d'otages à l'occasion de vols", C.KIDNAPPING, "During robbery"),
    (9, "Prises d'otages dans un autre but", C.KIDNAPPING, "Other purposes"),
    (10, "Séquestrations", C.KIDNAPPING, "Unlawful detention"),
    # ARMED_ROBBERY
    (15, "Vols à main armée contre des établissements financiers", C.ARMED_ROBBERY, "Banks/financial"),
    (16, "Vols à main armée contre des établissements industriels ou commerciaux", C.ARMED_ROBBERY, "Commercial/industrial"),
    (17, "Vols à main armée contre des entreprises de transports de fonds", C.ARMED_ROBBERY, "Cash transport"),
    (18, "Vols à main armée contre des particuliers à leur domicile", C.ARMED_ROBBERY, "Private homes"),
    (19, "Autres vols à main armée", C.ARMED_ROBBERY, "Other armed robbery"),
    (20, "Vols avec armes blanches contre des établissements financiers, commerciaux ou industriels", C.ARMED_ROBBERY, "Knife - commercial"),
    (21, "Vols avec armes blanches contre des particuliers à leur domicile", C.ARMED_ROBBERY, "Knife - homes"),
    (22, "Autres vols avec armes blanches", C.ARMED_ROBBERY, "Knife - other"),
    # ROBBERY
    (23, "Vols violents sans arme contre des établissements financiers, commerciaux ou industriels", C.ROBBERY, "Violent - commercial"),
    (24, "Vols violents sans arme contre des particuliers à leur domicile", C.ROBBERY, "Violent - homes"),
    (25, "Vols violents sans arme contre des femmes sur voie publique ou autre lieu public", C.ROBBERY, "Street robbery - women"),
    (26, "Vols violents sans arme contre d'autres victimes", C.ROBBERY, "Other violent theft"),
    # BURGLARY_RESIDENTIAL
    (14, "Violations de domicile", C.BURGLARY_RESIDENTIAL, "Home invasion (no theft)"),
    (27, "Cambriolages de locaux d'habitations principales", C.BURGLARY_RESIDENTIAL, "Primary residence"),
    (28, "Cambriolages de résidences secondaires", C.BURGLARY_RESIDENTIAL, "Secondary residence"),
    (31, "Vols avec entrée par ruse en tous lieux", C.BURGLARY_RESIDENTIAL, "Entry by deception"),
    # BURGLARY_COMMERCIAL
    (29, "Cambriolages de locaux industriels, commerciaux ou financiers", C.BURGLARY_COMMERCIAL, "Commercial/industrial"),
    (30, "Cambriolages d'autres lieux", C.BURGLARY_COMMERCIAL, "Other locations"),
    # VEHICLE_THEFT
    (34, "Vols de véhicules de transport avec fret", C.VEHICLE_THEFT, "Transport vehicles"),
    (35, "Vols d'automobiles", C.VEHICLE_THEFT, "Cars"),
    (36, "Vols de véhicules motorisés à 2 roues", C.VEHICLE_THEFT, "Motorcycles"),
    (37, "Vols à la roulotte", C.VEHICLE_THEFT, "Theft from vehicles"),
    (38, "Vols d'accessoires sur véhicules à moteur immatriculés", C.VEHICLE_THEFT, "Vehicle accessories"),
    # THEFT_OTHER
    (32, "Vols à la tire", C.THEFT_OTHER, "Pickpocketing"),
    (33, "Vols à l'étalage", C.THEFT_OTHER, "Shoplifting"),
    (39, "Vols simples sur chantier", C.THEFT_OTHER, "Construction sites"),
    (40, "Vols simples sur exploitation agricole", C.THEFT_OTHER, "Agricultural"),
    (41, "Autres vols simples contre des établissements publics ou privés", C.THEFT_OTHER, "Public/private premises"),
    (42, "Autres vols simples contre des particuliers dans des locaux privés", C.THEFT_OTHER, "Private premises"),
    (43, "Autres vols simples contre des particuliers dans des locaux ou lieux publics", C.THEFT_OTHER, "Public places"),
    (44, "Recels", C.THEFT_OTHER, "Receiving stolen goods"),
    # DRUG_TRAFFICKING
    (55, "Trafic et revente sans usage de stupéfiants", C.DRUG_TRAFFICKING, "Trafficking only"),
    (56, "Usage-revente de stupéfiants", C.DRUG_TRAFFICKING, "Use + dealing"),
    # DRUG_USE
    (57, "Usage de stupéfiants", C.DRUG_USE, "Personal use"),
    (58, "Autres infractions à la législation sur les stupéfiants", C.DRUG_USE, "Other drug offenses"),
    # ARSON
    (62, "Incendies volontaires de biens publics", C.ARSON, "Public property"),
    (63, "Incendies volontaires de biens privés", C.ARSON, "Private property"),
    (64, "Attentats à l'explosif contre des biens publics", C.ARSON, "Bombings - public"),
    (65, "Attentats à l'explosif contre des biens privés", C.ARSON, "Bombings - private"),
    # VANDALISM
    (66, "Autres destructions et dégradations de biens publics", C.VANDALISM, "Public property"),
    (67, "Autres destructions et dégradations de biens privés", C.VANDALISM, "Private property"),
    (68, "Destructions et dégradations de véhicules privés", C.VANDALISM, "Vehicles"),
    # FRAUD
    (81, "Faux documents d'identité", C.FRAUD, "Identity documents"),
    (82, "Faux documents concernant la circulation des véhicules", C.FRAUD, "Vehicle documents"),
    (83, "Autres faux documents administratifs", C.FRAUD, "Other admin docs"),
    (84, "Faux en écriture publique et authentique", C.FRAUD, "Public document forgery"),
    (85, "Autres faux en écriture", C.FRAUD, "Other forgery"),
    (86, "Fausse monnaie", C.FRAUD, "Counterfeiting"),
    (87, "Contrefaçons et fraudes industrielles et commerciales", C.FRAUD, "Commercial fraud"),
    (88, "Contrefaçons littéraires et artistiques", C.FRAUD, "IP violations"),
    (89, "Falsifications et usages de chèques volés", C.FRAUD, "Check fraud"),
    (90, "Falsifications et usages de cartes de crédit", C.FRAUD, "Credit card fraud"),
    (91, "Escroqueries et abus de confiance", C.FRAUD, "Swindling"),
    (92, "Infractions à la législation sur les chèques", C.FRAUD, "Check violations"),
    (98, "Banqueroutes, abus de biens sociaux et autres délits de société", C.FRAUD, "Corporate crimes"),
    (101, "Prix illicites, publicité fausse et infractions aux règles de la concurrence", C.FRAUD, "Competition violations"),
    (102, "Achats et ventes sans factures", C.FRAUD, "Invoice fraud"),
    (106, "Autres délits économiques et financiers", C.FRAUD, "Other financial crimes"),
    # CHILD_ABUSE
    (52, "Violences, mauvais traitements et abandons d'enfants", C.CHILD_ABUSE, "Abuse/neglect"),
    (53, "Délits au sujet de la garde des mineurs", C.CHILD_ABUSE, "Custody violations"),
    (54, "Non versement de pension alimentaire", C.CHILD_ABUSE, "Child support"),
    # DOMESTIC_VIOLENCE: no État 4001 index
    # OTHER
    (59, "Délits de débits de boissons et ivresse publique", C.OTHER, "Alcohol offenses"),
    (60, "Fraudes alimentaires et infractions à l'hygiène", C.OTHER, "Food fraud/hygiene"),
    (61, "Autres délits contre santé publique et réglementation des professions médicales", C.OTHER, "Health regulations"),
    (69, "Infractions aux conditions générales d'entrée et de séjour des étrangers", C.OTHER, "Immigration - entry"),
    (70, "Aide à l'entrée, à la circulation et au séjour des étrangers", C.OTHER, "Immigration - aiding"),
    (71, "Autres infractions à la police des étrangers", C.OTHER, "Immigration - other"),
    (72, "Outrages à dépositaires de l'autorité", C.OTHER, "Insulting authority"),
    (74, "Port ou détention d'armes prohibées", C.OTHER, "Weapons possession"),
    (75, "Atteintes aux intérêts fondamentaux de la Nation", C.OTHER, "Offenses vs. state"),
    (76, "Délits des courses et des jeux", C.OTHER, "Gambling offenses"),
    (77, "Délits interdiction de séjour et de paraître", C.OTHER, "Residency violations"),
    (78, "Destructions, cruautés et autres délits envers les animaux", C.OTHER, "Animal cruelty"),
    (79, "Atteintes à l'environnement", C.OTHER, "Environmental"),
    (80, "Chasse et pêche", C.OTHER, "Hunting/fishing"),
    (93, "Travail clandestin", C.OTHER, "Illegal labor"),
    (94, "Emploi d'étranger sans titre de travail", C.OTHER, "Illegal employment"),
    (95, "Marchandage - prêt de main d'œuvre", C.OTHER, "Labor trafficking"),
    (103, "Infractions à l'exercice d'une profession réglementée", C.OTHER, "Professional violations"),
    (104, "Infractions au droit de l'urbanisme et de la construction", C.OTHER, "Construction violations"),
    (105, "Pollution, infractions aux règles de sécurité", C.OTHER, "Safety violations"),
    (107, "Autres délits", C.OTHER, "Miscellaneous"),
]


class CategoryMapper:
    """
    Lookup and validation over a classification table.

    Build once (per process or per test) and pass it to the aggregator.
    Alternate tables can be supplied for testing.
    """

    def __init__(
        self,
        entries: Iterable[ClassificationEntry],
        unused_indices: Iterable[int] = UNUSED_INDICES,
        total_indices: int = TOTAL_INDICES,
    ):
        self._entries: tuple[ClassificationEntry, ...] = tuple(entries)
        self._unused = frozenset(unused_indices)
        self._total = total_indices

        self._by_index: dict[int, ClassificationEntry] = {}
        self._by_code: dict[CanonicalCategory, list[int]] = {code: [] for code in CanonicalCategory}

        for entry in self._entries:
            # first entry wins; duplicates are reported by validate()
            if entry.source_index in self._by_index:
                continue
            self._by_index[entry.source_index] = entry
            self._by_code[entry.canonical_code].append(entry.source_index)

        for indices in self._by_code.values():
            indices.sort()

        logger.debug(f"Initialized category mapper with {len(self._by_index)} mappings")

    def lookup(self, index: int) -> CategoryLookup:
        if index in self._unused:
            return CategoryLookup(found=False, is_unused=True)

        entry = self._by_index.get(index)
        if entry is None:
            return CategoryLookup(found=False, is_unused=False)

        return CategoryLookup(
            found=True,
            canonical_code=entry.canonical_code,
            label=entry.source_label,
            is_unused=False,
            note=entry.note,
        )

    def get_canonical_code(self, index: int) -> CanonicalCategory | None:
        return self.lookup(index).canonical_code

    def is_unused(self, index: int) -> bool:
        return index in self._unused

    def has_mapping(self, index: int) -> bool:
        return index in self._by_index

    def get_indices_for_category(self, code: CanonicalCategory | str) -> list[int]:
        return list(self._by_code.get(CanonicalCategory(code), []))

    def get_mapping_entry(self, index: int) -> ClassificationEntry | None:
        return self._by_index.get(index)

    def get_mappings_for_category(self, code: CanonicalCategory | str) -> list[ClassificationEntry]:
        return [self._by_index[i] for i in self.get_indices_for_category(code)]

    def get_all_mappings(self) -> list[ClassificationEntry]:
        return list(self._entries)

    def get_statistics(self) -> MappingStatistics:
        per_category = {code: len(indices) for code, indices in self._by_code.items()}
        return MappingStatistics(
            total_indices=self._total,
            active_indices=len(self._by_index),
            unused_indices=len(self._unused),
            indices_per_category=per_category,
            empty_categories=[code for code, n in per_category.items() if n == 0],
        )

    def validate(self) -> MapperValidation:
        """
        Every index in 1..total must be either mapped or unused, never both
        and never mapped twice. An empty canonical category is an error,
        except DOMESTIC_VIOLENCE which only warns.
        """
        warnings: list[str] = []
        errors: list[str] = []
        stats = self.get_statistics()

        for code in stats.empty_categories:
            if code == EXPECTED_EMPTY_CATEGORY:
                warnings.append(
                    f"{code} has no État 4001 mappings (expected - historical data limitation)"
                )
            else:
                errors.append(f"Canonical category {code} has no État 4001 mappings")

        expected_active = self._total - len(self._unused)
        if stats.active_indices != expected_active:
            warnings.append(
                f"Expected {expected_active} active mappings, found {stats.active_indices}"
            )

        duplicates = Counter(e.source_index for e in self._entries)
        for index, n in sorted(duplicates.items()):
            if n > 1:
                errors.append(f"Index {index} is mapped {n} times")

        for index in sorted(self._unused & self._by_index.keys()):
            errors.append(f"Index {index} is both mapped and marked as unused")

        for index in range(1, self._total + 1):
            if not self.has_mapping(index) and not self.is_unused(index):
                errors.append(f"Index {index} is neither mapped nor marked as unused")

        for index in sorted(self._by_index):
            if index < 1 or index > self._total:
                errors.append(f"Index {index} is outside 1..{self._total}")

        return MapperValidation(valid=not errors, warnings=warnings, errors=errors)

    def summary_report(self) -> str:
        stats = self.get_statistics()
        lines = [
            "=== État 4001 Category Mapping Summary ===",
            "",
            f"Total Indices: {stats.total_indices}",
            f"Active (Mapped): {stats.active_indices}",
            f"Unused: {stats.unused_indices}",
            "",
            "--- Indices per Canonical Category ---",
        ]
        for code, n in stats.indices_per_category.items():
            lines.append(f"  {code}: {n if n else '(none)'}")

        if stats.empty_categories:
            lines += ["", "--- Categories with No Mappings ---"]
            lines += [f"  {code}" for code in stats.empty_categories]

        return "\n".join(lines)


def build_etat4001_mapper() -> CategoryMapper:
    """Fresh mapper over the État 4001 table."""
    entries = [
        ClassificationEntry(source_index=i, source_label=label, canonical_code=code, note=note)
        for i, label, code, note in ETAT4001_TABLE
    ]
    return CategoryMapper(entries)
