# memomiles/api/countries.py
"""Country-name hints for free-text locations.

``"Malmö, Sweden"`` geocodes far more reliably as ``"Malmö"`` restricted to
``country=se`` than as the raw string, so the geocoder strips a trailing
country name and passes its ISO 3166-1 alpha-2 code as a filter.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

# Lowercase country name (English and native spellings) -> ISO alpha-2 code
COUNTRY_CODES = {
    # Scandinavia
    "sweden": "se",
    "sverige": "se",
    "norway": "no",
    "norge": "no",
    "denmark": "dk",
    "danmark": "dk",
    "finland": "fi",
    "suomi": "fi",
    "iceland": "is",
    "ísland": "is",
    # Western Europe
    "france": "fr",
    "germany": "de",
    "deutschland": "de",
    "spain": "es",
    "españa": "es",
    "italy": "it",
    "italia": "it",
    "portugal": "pt",
    "netherlands": "nl",
    "the netherlands": "nl",
    "belgium": "be",
    "belgië": "be",
    "belgique": "be",
    "austria": "at",
    "österreich": "at",
    "switzerland": "ch",
    "schweiz": "ch",
    "suisse": "ch",
    # UK & Ireland
    "uk": "gb",
    "united kingdom": "gb",
    "great britain": "gb",
    "england": "gb",
    "scotland": "gb",
    "wales": "gb",
    "ireland": "ie",
    # Eastern Europe
    "poland": "pl",
    "polska": "pl",
    "czech republic": "cz",
    "czechia": "cz",
    "hungary": "hu",
    "magyarország": "hu",
    "romania": "ro",
    "românia": "ro",
    "bulgaria": "bg",
    "българия": "bg",
    # North America
    "usa": "us",
    "united states": "us",
    "america": "us",
    "canada": "ca",
    "mexico": "mx",
    "méxico": "mx",
    # Asia
    "japan": "jp",
    "日本": "jp",
    "china": "cn",
    "中国": "cn",
    "south korea": "kr",
    "korea": "kr",
    "india": "in",
    "thailand": "th",
    "vietnam": "vn",
    # Oceania
    "australia": "au",
    "new zealand": "nz",
    # South America
    "brazil": "br",
    "brasil": "br",
    "argentina": "ar",
    "chile": "cl",
}

_WORD_SPLIT = re.compile(r"\s+")


def get_country_code(name: str) -> Optional[str]:
    """Return the ISO code for a country name, or None."""
    return COUNTRY_CODES.get(name.strip().lower().rstrip("."))


def split_country(location: str) -> Tuple[str, Optional[str]]:
    """Split a trailing country off ``location``.

    Returns ``(place, code)``; ``code`` is None and ``place`` is the trimmed
    input when no country is recognised. Tried in order: the last
    comma-separated part, the last two words, the last word. A location
    that is only a country name is left alone.
    """
    text = location.strip()

    if "," in text:
        parts = [part.strip() for part in text.split(",")]
        head = [part for part in parts[:-1] if part]
        code = get_country_code(parts[-1])
        if code and head:
            return ", ".join(head), code

    words = _WORD_SPLIT.split(text)
    for width in (2, 1):
        if len(words) > width:
            code = get_country_code(" ".join(words[-width:]))
            if code:
                return " ".join(words[:-width]).rstrip(" ,"), code

    return text, None


def extract_country_code(location: str) -> Optional[str]:
    """``"Malmö, Sweden"`` -> ``"se"``."""
    return split_country(location)[1]


def remove_country(location: str) -> str:
    """``"Malmö, Sweden"`` -> ``"Malmö"``."""
    return split_country(location)[0]
