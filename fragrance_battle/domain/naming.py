"""Display-name cleanup for catalog entries.

The source catalog often repeats the brand (and sometimes a year) inside the
fragrance name, e.g. ``"Pour Homme Versace 2020"`` for brand ``"Versace"``.
:func:`clean_fragrance_name` strips that redundancy for display.

Patterns are tried in order and the first match wins:

1. ``Atelier <Brand> - <Product> <Brand> <Year>`` -> ``<Product> <Year>``
2. ``<Product> <Brand> <Year>``                  -> ``<Product> <Year>``
3. ``<Product> <Brand>``                         -> ``<Product>`` (product must keep > 3 chars)
4. ``<Brand> - <Product>``                       -> ``<Product>``

Afterwards whitespace is collapsed and any 1900–2099 year token is removed.
A limited-edition year that is part of the real name is lost too; the catalog
is too messy to tell the two apart.  If less than two characters survive the
original name is kept.

Everything here is pure and safe to call from response serialization.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

MIN_PRODUCT_LENGTH = 3
MIN_RESULT_LENGTH = 2

_WHITESPACE = re.compile(r"\s+")
_YEAR_TOKEN = re.compile(r"\b(?:19|20)\d{2}\b")


class CleanupPattern(str, Enum):
    ATELIER = "atelier"
    BRAND_WITH_YEAR = "brand_with_year"
    BRAND_SUFFIX = "brand_suffix"
    DASH_PREFIX = "dash_prefix"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class NameCleanup:
    original: str
    cleaned: str
    pattern: CleanupPattern

    @property
    def has_redundancy(self) -> bool:
        return self.pattern is not CleanupPattern.UNCHANGED


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


@lru_cache(maxsize=1024)
def _brand_patterns(brand: str) -> tuple[tuple[CleanupPattern, re.Pattern], ...]:
    b = re.escape(brand)
    return (
        (
            CleanupPattern.ATELIER,
            re.compile(rf"^Atelier\s+{b}\s*-\s*(?P<product>.+?)\s+{b}\s+(?P<year>\d{{4}})$", re.I),
        ),
        (
            CleanupPattern.BRAND_WITH_YEAR,
            re.compile(rf"^(?P<product>.+?)\s+{b}\s+(?P<year>\d{{4}})$", re.I),
        ),
        (CleanupPattern.BRAND_SUFFIX, re.compile(rf"^(?P<product>.+?)\s+{b}$", re.I)),
        (CleanupPattern.DASH_PREFIX, re.compile(rf"^{b}\s*-\s*(?P<product>.+)$", re.I)),
    )


def _clean_once(name: str, brand: str) -> tuple[str, CleanupPattern]:
    text = _collapse(name)
    for pattern, regex in _brand_patterns(brand):
        match = regex.match(text)
        if match is None:
            continue
        product = match.group("product").strip()
        if pattern is CleanupPattern.BRAND_SUFFIX and len(product) <= MIN_PRODUCT_LENGTH:
            continue
        year = match.groupdict().get("year")
        candidate = f"{product} {year}" if year else product
        break
    else:
        pattern, candidate = CleanupPattern.UNCHANGED, text

    candidate = _collapse(_YEAR_TOKEN.sub("", _collapse(candidate)))
    if len(candidate) < MIN_RESULT_LENGTH:
        return text, CleanupPattern.UNCHANGED
    return candidate, pattern


def analyze_fragrance_name(name: str, brand: str) -> NameCleanup:
    """Clean ``name`` and report which pattern fired.

    The single pass is repeated until the output stops changing, so the
    result is a fixed point: cleaning it again returns it unchanged.  Every
    changing pass makes the string strictly shorter, which bounds the loop.
    """
    if not name:
        return NameCleanup("", "", CleanupPattern.UNCHANGED)
    brand = _collapse(brand or "")
    if not brand:
        return NameCleanup(name, name, CleanupPattern.UNCHANGED)

    cleaned, pattern = _clean_once(name, brand)
    while True:
        again, _ = _clean_once(cleaned, brand)
        if again == cleaned:
            break
        cleaned = again
    return NameCleanup(name, cleaned, pattern)


def clean_fragrance_name(name: str, brand: str) -> str:
    return analyze_fragrance_name(name, brand).cleaned


# ---------------------------------------------------------------------------
# Brand and concentration labels
# ---------------------------------------------------------------------------
_LOWERCASE_PARTICLES = {"de", "la", "le", "du", "al", "el", "von", "van", "and", "for", "by", "the"}

_BRAND_EXCEPTIONS = {
    "Dolce Gabbana": "Dolce & Gabbana",
    "Dolce And Gabbana": "Dolce & Gabbana",
    "Viktor Rolf": "Viktor & Rolf",
    "Viktor And Rolf": "Viktor & Rolf",
    "Hermes": "Hermès",
}

_CONCENTRATION_LABELS = {
    "edt": "Eau de Toilette (EDT)",
    "eau de toilette": "Eau de Toilette (EDT)",
    "edp": "Eau de Parfum (EDP)",
    "eau de parfum": "Eau de Parfum (EDP)",
    "parfum": "Parfum",
    "extrait": "Parfum",
    "extrait de parfum": "Parfum",
    "perfume": "Parfum",
    "edc": "Cologne",
    "cologne": "Cologne",
    "eau de cologne": "Cologne",
    "eau fraiche": "Eau Fraiche",
}


def _title_word(word: str, index: int) -> str:
    lower = word.lower()
    if index > 0 and lower in _LOWERCASE_PARTICLES:
        return lower
    return lower[:1].upper() + lower[1:]


def format_brand_name(brand: str) -> str:
    """``"dolce-gabbana"`` -> ``"Dolce & Gabbana"``, ``"tom_ford"`` -> ``"Tom Ford"``."""
    if not brand:
        return ""
    words = _collapse(re.sub(r"[-_]", " ", brand)).split(" ")
    formatted = " ".join(_title_word(word, i) for i, word in enumerate(words))
    return _BRAND_EXCEPTIONS.get(formatted, formatted)


def format_concentration(concentration: str | None) -> str:
    if not concentration or concentration == "Concentration":
        return ""
    normalized = _collapse(concentration)
    label = _CONCENTRATION_LABELS.get(normalized.lower())
    if label:
        return label
    return " ".join(_title_word(word, i) for i, word in enumerate(normalized.split(" ")))


# ---------------------------------------------------------------------------
# Search terms
# ---------------------------------------------------------------------------
_SEARCH_ALIASES = {
    "j'adore": ("jadore", "j adore"),
    "l'eau": ("leau", "l eau"),
    "l'homme": ("lhomme", "l homme"),
    "d'amour": ("damour", "d amour"),
    "l'instant": ("linstant", "l instant"),
    "l'imperatrice": ("limperatrice", "l imperatrice"),
    "no 5": ("no5", "no. 5", "number 5", "n5"),
    "no 1": ("no1", "no. 1", "number 1", "n1"),
    "ck one": ("ck 1", "calvin klein one", "calvin klein 1"),
}

_APOSTROPHES = re.compile(r"['’`]")
_SEPARATORS = re.compile(r"[.\-_]")


def normalize_search_term(term: str) -> str:
    """``"Dolce & Gabbana"`` -> ``"dolce and gabbana"``, ``"tom-ford"`` -> ``"tom ford"``."""
    normalized = _APOSTROPHES.sub("", term.lower().strip())
    normalized = normalized.replace("&", " and ")
    normalized = _SEPARATORS.sub(" ", normalized)
    return _collapse(normalized)


def search_variations(term: str) -> list[str]:
    """Spellings to try for a free-text query, original first.

    Adds the normalized form, ``&``/``and`` swaps, and the known aliases for
    apostrophe and number names (``"jadore"`` also searches ``"j'adore"``).
    """
    original = _collapse(term.lower())
    normalized = normalize_search_term(term)
    variations = [original, normalized]

    if " and " in f" {normalized} ":
        variations.append(_collapse(f" {normalized} ".replace(" and ", " & ")))
    if "&" in original:
        variations.append(_collapse(original.replace("&", " and ")))

    for canonical, aliases in _SEARCH_ALIASES.items():
        spellings = (canonical, *aliases)
        if any(normalize_search_term(spelling) in normalized for spelling in spellings):
            variations.extend(spellings)

    return [v for v in dict.fromkeys(variations) if v]
