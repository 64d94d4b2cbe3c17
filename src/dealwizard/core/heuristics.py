"""
Anti-ambiguity heuristics for free text typed into the deal wizard.

These are deliberately coarse lexical checks, not language understanding:
each classifier looks for terms from a fixed word list in normalized text.
The word lists are plain data so they can be tested and extended without
touching the functions below.

This module is pure and platform-agnostic.
"""

import re
from functools import lru_cache

# ── Word lists ───────────────────────────────────────────────

# Subjective adjectives/adverbs that need a measurable qualifier.
FUZZY_WORDS: frozenset[str] = frozenset({
    "beautiful",
    "professional",
    "intuitive",
    "modern",
    "better",
    "great",
    "top",
    "perfect",
    "fast",
    "efficient",
    "complete",
    "total",
    "everything",
    "well done",
    "high quality",
    "user friendly",
    "robust",
    "simple",
    "easy",
    "pleasant",
    "clean",
    "polished",
})

# Units and indicators that make a criterion measurable.
UNIT_TOKENS: frozenset[str] = frozenset({
    "s", "ms", "sec", "%",
    "mm", "cm", "m", "km",
    "hour", "hours", "h", "day", "days",
    "min", "mins", "minute", "minutes",
    "page", "pages",
    "kb", "mb", "gb",
    "dpi", "px", "fps",
    "$", "usd", "eur",
})

# Names too vague to identify a project.
GENERIC_PROJECT_NAMES: frozenset[str] = frozenset({"project", "service", "job"})

# "We need X" phrasing — fine only when backed by a context marker.
NEED_MARKERS: tuple[str, ...] = ("i need", "we need", "i want", "we want")

CONTEXT_MARKERS: tuple[str, ...] = (
    "today",
    "currently",
    "at the moment",
    "this causes",
    "because",
    "since",
    "due to",
    "as a result",
    "impacts",
    "results in",
)

# Totalizing words that hide the real size of a scope item.
BROAD_SCOPE_WORDS: frozenset[str] = frozenset({
    "complete", "total", "everything", "entire", "100%", "full",
})

MIN_CONTEXT_WORDS = 7

_DIGIT_RE = re.compile(r"\d")


# ── Matching helpers ─────────────────────────────────────────


def normalize(text: object) -> str:
    """Trim and case-fold any value (None becomes an empty string)."""
    if text is None:
        return ""
    return str(text).strip().casefold()


@lru_cache(maxsize=None)
def _term_pattern(term: str) -> re.Pattern[str]:
    # A term must not be glued to letters, digits or '%'; nor follow an
    # apostrophe ("top" does not match "laptop", "m" does not match "i'm",
    # "everything" still matches "everything's").
    return re.compile(r"(?<![\w%'’])" + re.escape(term) + r"(?![\w%])")


def _contains_any(normalized: str, terms) -> bool:
    return any(_term_pattern(term).search(normalized) for term in terms)


# ── Classifiers ──────────────────────────────────────────────


def contains_fuzzy(text: str) -> bool:
    """True if the text uses any subjective word from FUZZY_WORDS."""
    return _contains_any(normalize(text), FUZZY_WORDS)


def contains_measurable(text: str) -> bool:
    """True if the text has a digit or a unit token."""
    t = normalize(text)
    return bool(_DIGIT_RE.search(t)) or _contains_any(t, UNIT_TOKENS)


def is_verifiable(text: str) -> bool:
    """
    A sentence is acceptable if it is not subjective, or if it is
    subjective but backed by a measurable qualifier.

    >>> is_verifiable("fast")
    False
    >>> is_verifiable("loads in 2s")
    True
    """
    return not contains_fuzzy(text) or contains_measurable(text)


def is_generic_name(name: str) -> bool:
    """True if the whole name is one of GENERIC_PROJECT_NAMES."""
    return normalize(name) in GENERIC_PROJECT_NAMES


def lacks_context(text: str) -> bool:
    """
    Coarse check that a problem statement explains the current situation.

    True when the text is empty, when it states a need without any
    context marker, or when it is shorter than MIN_CONTEXT_WORDS words.
    """
    t = normalize(text)
    if not t:
        return True
    has_need = _contains_any(t, NEED_MARKERS)
    has_context = _contains_any(t, CONTEXT_MARKERS)
    if has_need and not has_context:
        return True
    return len(t.split()) < MIN_CONTEXT_WORDS


def has_broad_scope_word(text: str) -> bool:
    """True if the text contains a totalizing word such as 'everything'."""
    return _contains_any(normalize(text), BROAD_SCOPE_WORDS)
