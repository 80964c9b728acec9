"""
Category Matcher for near-duplicate category detection.

Scores how similar two category titles are using an ordered table of
variation rules with a normalized edit-distance fallback.
"""
import re
from dataclasses import dataclass
from typing import Callable

# Abbreviations seen in merchant feeds, full form -> short forms
ABBREVIATIONS: dict[str, tuple[str, ...]] = {
    "accessories": ("acc", "access"),
    "electronics": ("elec", "electronic"),
    "equipment": ("equip", "eqpt"),
    "miscellaneous": ("misc", "other"),
}

_WHITESPACE_RE = re.compile(r"\s+")
_AMPERSAND_RE = re.compile(r"\s*&\s*")
_AND_RE = re.compile(r"\s+and\s+")


def _is_plural_variant(a: str, b: str) -> bool:
    """Simple pluralization: s suffix added or removed, y <-> ies."""
    if a + "s" == b or b + "s" == a:
        return True
    if a.endswith("y") and a[:-1] + "ies" == b:
        return True
    if b.endswith("y") and b[:-1] + "ies" == a:
        return True
    return False


def _is_and_variant(a: str, b: str) -> bool:
    """"and" and "&" used interchangeably."""
    with_and = _AMPERSAND_RE.sub(" and ", a)
    with_ampersand = _AND_RE.sub(" & ", a)
    return b in (with_and, with_ampersand) and a != b


def _is_hyphen_variant(a: str, b: str) -> bool:
    """Hyphens and spaces used interchangeably."""
    with_hyphen = _WHITESPACE_RE.sub("-", a)
    with_space = a.replace("-", " ")
    return b in (with_hyphen, with_space) and a != b


def _is_abbreviation(a: str, b: str) -> bool:
    """One title is a known abbreviation of the other."""
    for full, short_forms in ABBREVIATIONS.items():
        if a == full and b in short_forms:
            return True
    return False


@dataclass(frozen=True)
class SimilarityRule:
    """
    One variation rule.

    Attributes:
        name: Rule identifier.
        weight: Similarity returned when the rule matches.
        test: Predicate on two normalized titles.
    """
    name: str
    weight: float
    test: Callable[[str, str], bool]

    def matches(self, a: str, b: str) -> bool:
        """Apply the rule in both directions."""
        return self.test(a, b) or self.test(b, a)


# Evaluated in order, first match wins
SIMILARITY_RULES: tuple[SimilarityRule, ...] = (
    SimilarityRule("exact", 1.0, lambda a, b: a == b),
    SimilarityRule("plural", 0.95, _is_plural_variant),
    SimilarityRule("and_ampersand", 0.92, _is_and_variant),
    SimilarityRule("hyphen_space", 0.90, _is_hyphen_variant),
    SimilarityRule("abbreviation", 0.88, _is_abbreviation),
)


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Edit distance between two strings.

    Args:
        s1: First string.
        s2: Second string.

    Returns:
        Minimum number of single-character insertions, deletions and
        substitutions turning s1 into s2.
    """
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (c1 != c2),
            ))
        previous = current

    return previous[-1]


class CategoryMatcher:
    """
    Similarity scoring for sibling category titles.

    Uses an ordered rule table and falls back to normalized Levenshtein
    similarity when no rule matches.
    """

    def __init__(self, rules: tuple[SimilarityRule, ...] = SIMILARITY_RULES) -> None:
        """
        Initialize the category matcher.

        Args:
            rules: Ordered variation rules.
        """
        self._rules = rules

    def similarity(self, title1: str, title2: str) -> float:
        """
        Calculate similarity between two category titles.

        Args:
            title1: First title.
            title2: Second title.

        Returns:
            Similarity score from 0.0 to 1.0.
        """
        a = self._normalize(title1)
        b = self._normalize(title2)

        for rule in self._rules:
            if rule.matches(a, b):
                return rule.weight

        max_length = max(len(a), len(b))
        if max_length == 0:
            return 1.0
        return 1.0 - levenshtein_distance(a, b) / max_length

    def matching_rule(self, title1: str, title2: str) -> str:
        """
        Name of the rule that decides the similarity of two titles.

        Args:
            title1: First title.
            title2: Second title.

        Returns:
            Rule name, or "levenshtein" when no rule matches.
        """
        a = self._normalize(title1)
        b = self._normalize(title2)
        for rule in self._rules:
            if rule.matches(a, b):
                return rule.name
        return "levenshtein"

    def _normalize(self, text: str) -> str:
        """
        Normalize text for comparison.

        Args:
            text: Text to normalize.

        Returns:
            Lower-cased, trimmed text with single spaces.
        """
        return _WHITESPACE_RE.sub(" ", text.lower()).strip()
