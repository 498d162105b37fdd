"""
Canonical exam sections and free-text category normalization.
"""
from enum import Enum
from typing import Dict, Optional


class Section(str, Enum):
    """Canonical scoring sections."""

    VERBAL = "verbal"
    NUMERICAL = "numerical"
    ANALYTICAL = "analytical"
    GENERAL_INFO = "generalInfo"
    CLERICAL = "clerical"
    CONSTITUTION = "constitution"

    @property
    def label(self) -> str:
        return SECTION_LABELS[self]


SECTION_LABELS: Dict[Section, str] = {
    Section.VERBAL: "Verbal Ability",
    Section.NUMERICAL: "Numerical Ability",
    Section.ANALYTICAL: "Analytical Ability",
    Section.GENERAL_INFO: "General Knowledge",
    Section.CLERICAL: "Clerical Ability",
    Section.CONSTITUTION: "Philippine Constitution",
}

# Exact, case-sensitive labels as they appear in the question bank
CATEGORY_LABELS: Dict[str, Section] = {
    "Verbal Ability": Section.VERBAL,
    "Numerical Ability": Section.NUMERICAL,
    "Numerical Reasoning": Section.NUMERICAL,
    "Analytical Ability": Section.ANALYTICAL,
    "General Knowledge": Section.GENERAL_INFO,
    "General Information": Section.GENERAL_INFO,
    "Clerical Ability": Section.CLERICAL,
    "Philippine Constitution": Section.CONSTITUTION,
}

# Checked in order against the lower-cased category
SECTION_KEYWORDS = (
    ("verbal", Section.VERBAL),
    ("numerical", Section.NUMERICAL),
    ("analytical", Section.ANALYTICAL),
    ("clerical", Section.CLERICAL),
    ("constitution", Section.CONSTITUTION),
    ("philippine", Section.CONSTITUTION),
)


def normalize_category(category: Optional[str]) -> Section:
    """
    Map a free-text category label to its canonical section.

    Exact label match first, then a keyword substring test on the lower-cased
    label. Anything else, including empty or missing labels, is General Knowledge.

    Args:
        category: Category label as stored on the question

    Returns:
        Canonical section
    """
    if not category or not isinstance(category, str):
        return Section.GENERAL_INFO

    section = CATEGORY_LABELS.get(category)
    if section is not None:
        return section

    lowered = category.lower()
    for keyword, keyword_section in SECTION_KEYWORDS:
        if keyword in lowered:
            return keyword_section

    return Section.GENERAL_INFO


def empty_section_map(value=0) -> Dict[str, int]:
    """Section-key map with every canonical key present."""
    return {section.value: value for section in Section}
