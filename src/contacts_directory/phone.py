from __future__ import annotations

import logging
import re
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException

from .errors import InvalidPhoneFormat, RegionMismatch, UnparsablePhone
from .geo_catalog import GeoCatalog

logger = logging.getLogger(__name__)

INTERNATIONAL_PHONE_RE = re.compile(r"^\+[0-9\-/ ()]+$")


def _parse(value: str, region: Optional[str], path: str) -> phonenumbers.PhoneNumber:
    try:
        return phonenumbers.parse(value, region)
    except NumberParseException as exc:
        logger.debug("phonenumbers.parse failed for %s (region=%s): %s", value, region, exc)
        raise UnparsablePhone(path, "Wrong phone format") from exc


def supported_region(country_code: str) -> Optional[str]:
    return country_code if country_code in phonenumbers.SUPPORTED_REGIONS else None


def validate_phone(
    value: str, country_code: Optional[str], catalog: GeoCatalog, path: str = "phone"
) -> str:
    """
    Check an international phone number against the declared country.

    When the country is not in the catalog the number only has to be valid for
    some region; otherwise the region it resolves to must be the country itself.
    Returns the value unchanged.
    """
    if not isinstance(value, str) or not INTERNATIONAL_PHONE_RE.match(value):
        raise InvalidPhoneFormat(
            path, "Phone must start with + followed by digits, spaces, dashes or brackets"
        )

    country = catalog.country(country_code) if country_code else None
    if country is None or country.code != country_code:
        parsed = _parse(value, None, path)
        if not phonenumbers.is_valid_number(parsed):
            raise UnparsablePhone(path, "Wrong phone format")
        return value

    parsed = _parse(value, supported_region(country.code), path)
    inferred = phonenumbers.region_code_for_number(parsed)
    if inferred != country.code:
        raise RegionMismatch(inferred, country.code, path=path)
    return value


__all__ = ["INTERNATIONAL_PHONE_RE", "supported_region", "validate_phone"]
