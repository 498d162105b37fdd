"""
Tests for category normalization.
"""
import pytest

from cse_reviewer.engine.categories import Section, empty_section_map, normalize_category


class TestNormalizeCategory:
    """Tests for normalize_category."""

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("Verbal Ability", Section.VERBAL),
            ("Numerical Ability", Section.NUMERICAL),
            ("Numerical Reasoning", Section.NUMERICAL),
            ("Analytical Ability", Section.ANALYTICAL),
            ("General Knowledge", Section.GENERAL_INFO),
            ("General Information", Section.GENERAL_INFO),
            ("Clerical Ability", Section.CLERICAL),
            ("Philippine Constitution", Section.CONSTITUTION),
        ],
    )
    def test_exact_labels(self, label, expected):
        """Test that every known label maps to its section."""
        assert normalize_category(label) == expected

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("verbal reasoning", Section.VERBAL),
            ("NUMERICAL - Fractions", Section.NUMERICAL),
            ("Analytical Reasoning", Section.ANALYTICAL),
            ("Clerical Operations", Section.CLERICAL),
            ("1987 Constitution", Section.CONSTITUTION),
            ("Philippine History", Section.CONSTITUTION),
        ],
    )
    def test_keyword_fallback(self, label, expected):
        """Test substring matching on unknown labels."""
        assert normalize_category(label) == expected

    @pytest.mark.parametrize("label", [None, "", "Logic Puzzles", "Current Events", 42])
    def test_unknown_labels_are_general_info(self, label):
        """Test that anything unrecognized lands in General Knowledge."""
        assert normalize_category(label) == Section.GENERAL_INFO

    def test_section_labels(self):
        """Test display labels of the canonical sections."""
        assert Section.GENERAL_INFO.label == "General Knowledge"
        assert Section.CONSTITUTION.label == "Philippine Constitution"


class TestEmptySectionMap:
    def test_has_every_canonical_key(self):
        """Test that the map always carries all six keys."""
        section_map = empty_section_map()

        assert set(section_map) == {
            "verbal",
            "numerical",
            "analytical",
            "generalInfo",
            "clerical",
            "constitution",
        }
        assert all(value == 0 for value in section_map.values())
