"""Country code to display name and flag lookup."""

from typing import Dict, NamedTuple, Optional

GLOBE = "\U0001F30D"


class CountryDisplay(NamedTuple):
    name: str
    flag: str


def _flag(code: str) -> str:
    # Regional indicator symbols spell the ISO code as a flag emoji
    return "".join(chr(0x1F1E6 + ord(letter) - ord("A")) for letter in code.upper())


COUNTRIES: Dict[str, str] = {
    "AR": "Argentina",
    "AU": "Australia",
    "BD": "Bangladesh",
    "BR": "Brazil",
    "CA": "Canada",
    "CN": "China",
    "DK": "Denmark",
    "FI": "Finland",
    "FR": "France",
    "DE": "Germany",
    "IN": "India",
    "ID": "Indonesia",
    "IE": "Ireland",
    "IT": "Italy",
    "JP": "Japan",
    "KE": "Kenya",
    "MY": "Malaysia",
    "MX": "Mexico",
    "MA": "Morocco",
    "NO": "Norway",
    "PE": "Peru",
    "PH": "Philippines",
    "PL": "Poland",
    "PT": "Portugal",
    "ZA": "South Africa",
    "ES": "Spain",
    "SE": "Sweden",
    "CH": "Switzerland",
    "TN": "Tunisia",
    "GB": "United Kingdom",
    "US": "United States",
    "VN": "Vietnam",
}

_ALIASES: Dict[str, str] = {
    "usa": "US",
    "u.s.a.": "US",
    "u.s.": "US",
    "united states of america": "US",
    "america": "US",
    "uk": "GB",
    "u.k.": "GB",
    "great britain": "GB",
}

_LOOKUP: Dict[str, CountryDisplay] = {}
for _code, _name in COUNTRIES.items():
    _display = CountryDisplay(_name, _flag(_code))
    _LOOKUP[_code.lower()] = _display
    _LOOKUP[_name.lower()] = _display
for _alias, _code in _ALIASES.items():
    _LOOKUP[_alias] = _LOOKUP[_code.lower()]


def get_country_display(value: Optional[str]) -> CountryDisplay:
    """Resolve a country code, name or common alias for display.

    Args:
        value: ISO code, English name or alias such as "UK".

    Returns:
        Display name and flag. Empty input yields "Global"; unknown input is
        echoed back with a globe.
    """
    if not value or not value.strip():
        return CountryDisplay("Global", GLOBE)
    match = _LOOKUP.get(value.strip().lower())
    if match:
        return match
    return CountryDisplay(value, GLOBE)
