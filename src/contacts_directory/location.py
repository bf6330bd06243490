from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .errors import CatalogReferenceError, CompletenessError, FormatError
from .geo_catalog import Country, GeoCatalog


@dataclass(frozen=True)
class LocationRules:
    """
    What a location must look like for one country (and state, once chosen).

    An empty choice tuple means the field is neither required nor checked.
    """

    country_code: str
    state_choices: Tuple[str, ...] = ()
    city_choices: Tuple[str, ...] = ()

    @property
    def state_required(self) -> bool:
        return bool(self.state_choices)

    @property
    def city_required(self) -> bool:
        return bool(self.city_choices)


def location_rules(
    catalog: GeoCatalog, country: Country, state: Optional[str] = None
) -> LocationRules:
    """
    Decide state/city requirements from catalog cardinalities.

    With subdivisions, the state must be one of them and the city must be one
    of that state's cities when it has any. Without subdivisions, the city must
    be one of the country-level cities when there are any.
    """
    states = catalog.states_of(country)
    if states:
        cities = catalog.cities_of(country, state) if state else ()
        return LocationRules(
            country_code=country.code,
            state_choices=tuple(entry.code for entry in states),
            city_choices=tuple(city.name for city in cities),
        )
    return LocationRules(
        country_code=country.code,
        city_choices=tuple(city.name for city in catalog.cities_of(country, None)),
    )


def _present(candidate: Mapping[str, Any], key: str) -> Optional[str]:
    value = candidate.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise FormatError(key, f"{key} must be a string")
    return value


def validate_location(
    candidate: Mapping[str, Any], catalog: GeoCatalog, strict: bool = True
) -> LocationRules:
    """
    Check country -> state -> city consistency of ``candidate``.

    Strict mode reports missing required values; lenient mode only checks the
    values that were supplied. Returns the rules that were applied.
    """
    country_code = _present(candidate, "country")
    if country_code is None:
        if strict:
            raise CompletenessError("country", "You must select your country")
        return LocationRules(country_code="")

    country = catalog.country(country_code)
    if country is None or country.code != country_code:
        raise CatalogReferenceError("country", f"Unknown country: {country_code}")

    state = _present(candidate, "state")
    city = _present(candidate, "city")
    rules = location_rules(catalog, country, state)

    if rules.state_required:
        if state is None:
            if strict:
                raise CompletenessError("state", "You must select your state")
        elif state not in rules.state_choices:
            raise CatalogReferenceError(
                "state", f"No such state [{state}] for this country [{country.name}]"
            )

    if rules.city_required:
        if city is None:
            if strict:
                message = (
                    "You must select your city"
                    if rules.state_required
                    else "You can skip state but must select your city"
                )
                raise CompletenessError("city", message)
        elif city not in rules.city_choices:
            where = f"{country.code}, state: {state}" if state else country.code
            raise CatalogReferenceError("city", f"No such city in Country: {where}")

    return rules


__all__ = ["LocationRules", "location_rules", "validate_location"]
