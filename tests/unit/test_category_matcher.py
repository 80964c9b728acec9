"""
Unit tests for category title similarity.
"""

import pytest

from internal.usecase.category_matcher import CategoryMatcher, levenshtein_distance


class TestCategoryMatcher:
    """Tests for CategoryMatcher rule table."""

    @pytest.fixture
    def matcher(self):
        """Create category matcher instance."""
        return CategoryMatcher()

    def test_normalize_text(self, matcher):
        """Test text normalization."""
        assert matcher._normalize("  Home   Audio ") == "home audio"

    def test_exact_match_ignores_case(self, matcher):
        """Test exact case-insensitive match."""
        assert matcher.similarity("Shoes", "shoes") == 1.0
        assert matcher.matching_rule("Shoes", "SHOES") == "exact"

    @pytest.mark.parametrize(
        "title1,title2",
        [
            ("Accessory", "Accessories"),
            ("Accessories", "Accessory"),
            ("Shoe", "Shoes"),
            ("Battery", "Batteries"),
        ],
    )
    def test_plural_variants(self, matcher, title1, title2):
        """Test s-suffix and y/ies pluralization in both directions."""
        assert matcher.similarity(title1, title2) == 0.95

    def test_and_ampersand(self, matcher):
        """Test that 'and' and '&' are interchangeable."""
        assert matcher.similarity("Bed & Bath", "Bed and Bath") == 0.92
        assert matcher.similarity("bed and bath", "Bed&Bath") == 0.92

    def test_hyphen_space(self, matcher):
        """Test that hyphens and spaces are interchangeable."""
        assert matcher.similarity("T-Shirts", "T Shirts") == 0.90
        assert matcher.matching_rule("E Bikes", "e-bikes") == "hyphen_space"

    def test_abbreviation(self, matcher):
        """Test abbreviation table lookup in both directions."""
        assert matcher.similarity("Accessories", "Acc") == 0.88
        assert matcher.similarity("Misc", "Miscellaneous") == 0.88

    def test_levenshtein_fallback(self, matcher):
        """Test normalized edit distance when no rule matches."""
        # "colour" -> "color": one deletion over six characters
        assert matcher.similarity("Colour", "Color") == pytest.approx(1 - 1 / 6)
        assert matcher.matching_rule("Colour", "Color") == "levenshtein"

    def test_unrelated_titles_score_low(self, matcher):
        """Test that distinct categories stay below the merge threshold."""
        assert matcher.similarity("Shoes", "Kitchen") < 0.5
        assert matcher.similarity("Phones", "Tablets") <= 0.85

    def test_empty_titles(self, matcher):
        """Test that two empty titles are identical."""
        assert matcher.similarity("", "  ") == 1.0


class TestLevenshteinDistance:
    """Tests for edit distance."""

    @pytest.mark.parametrize(
        "s1,s2,expected",
        [
            ("", "", 0),
            ("abc", "", 3),
            ("kitten", "sitting", 3),
            ("flaw", "lawn", 2),
            ("same", "same", 0),
        ],
    )
    def test_distance(self, s1, s2, expected):
        """Test known edit distances."""
        assert levenshtein_distance(s1, s2) == expected
        assert levenshtein_distance(s2, s1) == expected
