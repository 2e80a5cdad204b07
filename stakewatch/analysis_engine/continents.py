"""
Default country -> continent lookup used by the continent breakdown.

Keys match the country names reported by the validator directory's IP
geolocation. Read-only; callers may pass their own table instead.
"""

from __future__ import annotations

from types import MappingProxyType

OTHER_CONTINENT = "Other"

_NORTH_AMERICA = ("United States", "Canada", "Mexico")
_SOUTH_AMERICA = ("Brazil", "Argentina", "Chile", "Colombia", "Peru")
_EUROPE = (
    "Germany", "Netherlands", "France", "United Kingdom", "Ireland",
    "Sweden", "Norway", "Poland", "Ukraine", "Romania", "Spain",
    "Austria", "Bulgaria", "Czech Republic", "Estonia", "Latvia",
    "Luxembourg", "Russia", "Republic of Lithuania", "Slovak Republic",
    "Finland", "Denmark", "Belgium", "Portugal", "Italy",
    "Switzerland", "Lithuania", "Turkey",
)
_ASIA = (
    "Japan", "Singapore", "Hong Kong", "South Korea", "India",
    "Thailand", "Indonesia", "Taiwan", "Philippines", "Vietnam", "Israel",
)
_AFRICA = ("South Africa",)
_OCEANIA = ("Australia", "New Zealand")


def _table() -> dict[str, str]:
    out: dict[str, str] = {}
    for continent, countries in (
        ("North America", _NORTH_AMERICA),
        ("South America", _SOUTH_AMERICA),
        ("Europe", _EUROPE),
        ("Asia", _ASIA),
        ("Africa", _AFRICA),
        ("Oceania", _OCEANIA),
    ):
        for country in countries:
            out[country] = continent
    return out


DEFAULT_COUNTRY_CONTINENT = MappingProxyType(_table())
