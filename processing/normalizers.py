"""
normalizers.py - Identifier Canonicalization for SDG Maps

Every join site in the pipeline compares identifiers through the functions in
this module, so two spellings of the same place or category end up under the
same key:

- canon / unquote: universal string canonicalization
- normalize_sdg: category codes ("1", "sdg1", "SDG 01", "overall", ...)
- norm_state_token: state abbreviations and full names
- normalize_area_name / normalize_metro_name: "City, ST" style names
- pick / coalesce: aliased column lookup for rows from disagreeing sources

Usage:
    from processing.normalizers import normalize_sdg, normalize_area_name

    normalize_sdg("sdg1")                 # "SDG-01"
    normalize_area_name("Anchorage, AK")  # AreaKey(city="anchorage", state="ak")
"""

import math
import re
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import numpy as np

OVERALL = "overall"

STATE_ABBR = {
    "alabama": "al", "alaska": "ak", "arizona": "az", "arkansas": "ar",
    "california": "ca", "colorado": "co", "connecticut": "ct", "delaware": "de",
    "florida": "fl", "georgia": "ga", "hawaii": "hi", "idaho": "id",
    "illinois": "il", "indiana": "in", "iowa": "ia", "kansas": "ks",
    "kentucky": "ky", "louisiana": "la", "maine": "me", "maryland": "md",
    "massachusetts": "ma", "michigan": "mi", "minnesota": "mn", "mississippi": "ms",
    "missouri": "mo", "montana": "mt", "nebraska": "ne", "nevada": "nv",
    "new hampshire": "nh", "new jersey": "nj", "new mexico": "nm", "new york": "ny",
    "north carolina": "nc", "north dakota": "nd", "ohio": "oh", "oklahoma": "ok",
    "oregon": "or", "pennsylvania": "pa", "rhode island": "ri", "south carolina": "sc",
    "south dakota": "sd", "tennessee": "tn", "texas": "tx", "utah": "ut",
    "vermont": "vt", "virginia": "va", "washington": "wa", "west virginia": "wv",
    "wisconsin": "wi", "wyoming": "wy",
    "district of columbia": "dc", "washington dc": "dc",
}

_DASHES = re.compile(r"[–—]")
_WHITESPACE = re.compile(r"\s+")
_EDGE_QUOTES = re.compile(r"^[\"']+|[\"']+$")
_SDG_DIGITS = re.compile(r"\d{1,2}", re.ASCII)
_SDG_PREFIXED = re.compile(r"sdg[-\s]?(\d{1,2})", re.ASCII)
_SDG_CANONICAL = re.compile(r"sdg-\d{2}", re.IGNORECASE | re.ASCII)
_STATE_ABBREVIATION = re.compile(r"^([a-z]{2})(?![a-z])")
_METRO_SUFFIX = re.compile(
    r"\s*(metropolitan statistical area|metropolitan area|metro area|metro)\s*$",
    re.IGNORECASE,
)


class AreaKey(NamedTuple):
    """Normalized (city, state) pair; state is "" when absent or unknown."""

    city: str
    state: str

    @property
    def key(self) -> str:
        return f"{self.city}|{self.state}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def canon(s: Any) -> str:
    """Lowercase, ASCII-dash, dot-free, whitespace-collapsed form of ``s``."""
    text = _text(s).lower()
    text = _DASHES.sub("-", text)
    text = text.replace(".", "")
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def unquote(s: Any) -> str:
    """Trim and strip any leading/trailing run of quote characters."""
    return _EDGE_QUOTES.sub("", _text(s).strip())


def canon_area_name(s: Any) -> str:
    # "Anchorage, AK" -> "anchorage, ak"
    return canon(unquote(s))


def normalize_sdg(raw: Any) -> str:
    """Normalize a category code to ``"overall"`` or ``"SDG-NN"``.

    Unrecognized codes are returned canonicalized and uppercased so they can
    still be compared, never rejected.
    """
    s = canon(unquote(raw))
    if not s or s in (OVERALL, "all", "total"):
        return OVERALL

    if _SDG_DIGITS.fullmatch(s):
        return f"SDG-{s.rjust(2, '0')}"

    match = _SDG_PREFIXED.fullmatch(s)
    if match:
        return f"SDG-{match.group(1).rjust(2, '0')}"

    if _SDG_CANONICAL.fullmatch(s):
        return s.upper()

    return s.upper()


def norm_state_token(raw: Any) -> str:
    """Return the lowercase 2-letter state abbreviation for ``raw`` or ""."""
    token = canon(unquote(raw))
    if not token:
        return ""

    match = _STATE_ABBREVIATION.match(token)
    if match:
        return match.group(1)

    return STATE_ABBR.get(token, "")


def _split_city_state(norm: str) -> AreaKey:
    city_part, _, state_part = norm.partition(",")
    return AreaKey(canon(city_part), norm_state_token(state_part))


def normalize_area_name(raw: Any) -> AreaKey:
    """ "Anchorage, AK" -> AreaKey(city="anchorage", state="ak")."""
    norm = canon(unquote(raw))
    if not norm:
        return AreaKey("", "")
    return _split_city_state(norm)


def normalize_metro_name(metro_name: Any, state_id_hint: Any = None) -> AreaKey:
    """Normalize a coordinate-table name such as "Anchorage, AK Metro Area".

    The state parsed from the name wins; ``state_id_hint`` (usually a
    ``state_id`` column) is only consulted when the name carries none.
    """
    stripped = _METRO_SUFFIX.sub("", _text(metro_name))
    city, state = _split_city_state(canon(unquote(stripped)))
    if not state:
        state = norm_state_token(state_id_hint)
    return AreaKey(city, state)


def pick(row: Mapping[str, Any], candidates: Sequence[str]) -> str:
    """Return the first non-blank value among ``candidates`` (any case form).

    Each candidate is tried as given, lowercased and uppercased before moving
    to the next one. Returns "" when nothing matches.
    """
    for key in candidates:
        for variant in (key, key.lower(), key.upper()):
            value = row.get(variant)
            text = _text(value)
            if value is not None and text.strip() != "":
                return text
    return ""


def coalesce(row: Mapping[str, Any], candidates: Sequence[str]) -> Optional[Any]:
    """Return the first present, non-null raw value among ``candidates``.

    Unlike ``pick`` a numeric zero or an empty string counts as present.
    """
    for key in candidates:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, float) and math.isnan(value):
            continue
        return value
    return None


def to_number(value: Any) -> float:
    """Parse ``value`` as a float; NaN when empty or unparsable."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = _text(value).strip()
    if not text:
        return math.nan
    try:
        return float(text)
    except ValueError:
        return math.nan


def to_finite(value: Any) -> Optional[float]:
    """``to_number`` that returns None for anything non-finite."""
    number = to_number(value)
    return number if math.isfinite(number) else None


def finite_mean(values: Iterable[float]) -> Optional[float]:
    """Arithmetic mean of the finite values, or None when there are none."""
    finite: List[float] = [v for v in values if math.isfinite(v)]
    if not finite:
        return None
    return float(np.mean(finite))


def pad_code(value: Any, width: int) -> str:
    """Left-pad a FIPS-style code with zeros.

    Integral floats (as produced by spreadsheet readers) print without their
    fractional part, so 2.0 becomes "02".
    """
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _text(value).rjust(width, "0")


def to_geoid(state_fips: Any, county_fips: Any) -> str:
    """2-digit state + 3-digit county -> 5-character GEOID."""
    return pad_code(state_fips, 2) + pad_code(county_fips, 3)
