from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pycountry
import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

BUNDLED_CATALOG = Path(__file__).with_name("geo_catalog.yaml")
ISO_BASE = "iso3166"


@dataclass(frozen=True)
class City:
    name: str
    country_code: str
    state_code: Optional[str] = None


@dataclass(frozen=True)
class State:
    code: str
    name: str
    country_code: str
    cities: Tuple[City, ...] = ()


@dataclass(frozen=True)
class Country:
    code: str
    name: str
    states: Tuple[State, ...] = ()
    # cities attached to the country itself, outside any subdivision
    cities: Tuple[City, ...] = ()


def _code(value: Any) -> str:
    return str(value or "").strip().upper()


def _country_code(country: Union[Country, str, None]) -> str:
    if isinstance(country, Country):
        return country.code
    return _code(country)


@dataclass(frozen=True)
class GeoCatalog:
    """
    Immutable reference data: countries, their subdivisions and cities.

    Lookups accept either a ``Country`` or a country code. Unknown countries or
    states resolve to empty collections rather than raising.
    """

    countries: Tuple[Country, ...] = ()
    _index: Dict[str, Country] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: Dict[str, Country] = {}
        for entry in self.countries:
            if entry.code in index:
                raise ValueError(f"Duplicate country code in catalog: {entry.code}")
            index[entry.code] = entry
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "GeoCatalog":
        countries: List[Country] = []
        for raw_country in payload.get("countries", []) or []:
            code = _code(raw_country.get("code"))
            if not code:
                raise ValueError(f"Country without code in catalog: {raw_country!r}")
            states: List[State] = []
            for raw_state in raw_country.get("states", []) or []:
                state_code = _code(raw_state.get("code"))
                if not state_code:
                    raise ValueError(f"State without code in catalog for {code}")
                states.append(
                    State(
                        code=state_code,
                        name=str(raw_state.get("name") or state_code),
                        country_code=code,
                        cities=tuple(
                            City(name=str(name), country_code=code, state_code=state_code)
                            for name in raw_state.get("cities", []) or []
                        ),
                    )
                )
            countries.append(
                Country(
                    code=code,
                    name=str(raw_country.get("name") or code),
                    states=tuple(states),
                    cities=tuple(
                        City(name=str(name), country_code=code)
                        for name in raw_country.get("cities", []) or []
                    ),
                )
            )
        return cls(countries=tuple(countries))

    def __len__(self) -> int:
        return len(self.countries)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and _code(code) in self._index

    def country(self, code: Union[Country, str, None]) -> Optional[Country]:
        return self._index.get(_country_code(code))

    def states_of(self, country: Union[Country, str, None]) -> Tuple[State, ...]:
        resolved = self.country(country)
        return resolved.states if resolved else ()

    def state(self, country: Union[Country, str, None], code: Optional[str]) -> Optional[State]:
        if not code:
            return None
        return next((s for s in self.states_of(country) if s.code == code), None)

    def cities_of(
        self, country: Union[Country, str, None], state: Optional[str] = None
    ) -> Tuple[City, ...]:
        resolved = self.country(country)
        if resolved is None:
            return ()
        if state is None:
            return resolved.cities
        found = self.state(resolved, state)
        return found.cities if found else ()

    def has_states(self, country: Union[Country, str, None]) -> bool:
        return bool(self.states_of(country))

    def has_cities(self, country: Union[Country, str, None], state: Optional[str] = None) -> bool:
        return bool(self.cities_of(country, state))

    def country_codes(self) -> Iterable[str]:
        return (entry.code for entry in self.countries)


def iso_catalog_mapping() -> Dict[str, Any]:
    """
    Every ISO 3166-1 country with its top-level ISO 3166-2 subdivisions.

    Returned in ``GeoCatalog.from_mapping`` shape. Subdivision codes drop the
    ``<country>-`` prefix (``US-FL`` becomes ``FL``); no cities are attached.
    """
    states_by_country: Dict[str, List[Dict[str, str]]] = {}
    for subdivision in pycountry.subdivisions:
        if subdivision.parent_code:
            continue
        country_code, _, state_code = subdivision.code.partition("-")
        states_by_country.setdefault(country_code, []).append(
            {"code": state_code, "name": subdivision.name}
        )
    return {
        "countries": [
            {
                "code": country.alpha_2,
                "name": country.name,
                "states": sorted(
                    states_by_country.get(country.alpha_2, []), key=lambda entry: entry["code"]
                ),
            }
            for country in pycountry.countries
        ]
    }


def overlay_countries(
    base: Iterable[Mapping[str, Any]], overlay: Iterable[Mapping[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Merge overlay country entries onto base entries by code.

    Keys present in an overlay entry replace the base ones wholesale, so
    ``states: []`` removes every subdivision. Unknown codes are appended.
    """
    merged: Dict[str, Dict[str, Any]] = {_code(entry.get("code")): dict(entry) for entry in base}
    for entry in overlay:
        code = _code(entry.get("code"))
        merged[code] = {**merged.get(code, {}), **entry}
    return list(merged.values())


def load_geo_catalog(path: Optional[Union[str, Path]] = None) -> GeoCatalog:
    """
    Load a catalog YAML, the bundled one by default.

    A file declaring ``base: iso3166`` is applied as an overlay on top of the
    ISO 3166 data; otherwise it is the whole catalog.
    """
    source = Path(path) if path else BUNDLED_CATALOG
    with open(source, "r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    base = payload.get("base")
    if base == ISO_BASE:
        payload = dict(
            payload,
            countries=overlay_countries(
                iso_catalog_mapping()["countries"], payload.get("countries") or []
            ),
        )
    elif base:
        raise ValueError(f"Unknown catalog base in {source}: {base!r}")
    catalog = GeoCatalog.from_mapping(payload)
    logger.debug("Loaded %d countries from %s", len(catalog), source)
    return catalog


__all__ = [
    "BUNDLED_CATALOG",
    "City",
    "Country",
    "GeoCatalog",
    "ISO_BASE",
    "State",
    "iso_catalog_mapping",
    "load_geo_catalog",
    "overlay_countries",
]
