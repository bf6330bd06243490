from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from .errors import CatalogReferenceError, CompletenessError, FormatError
from .geo_catalog import Country, GeoCatalog
from .location import validate_location
from .models import RECORD_FIELDS, REQUIRED_FIELDS
from .phone import validate_phone

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"^[a-zA-Z ]*$")
NAME_LENGTH = (1, 100)
EMAIL_LENGTH = (4, 150)


@dataclass
class ValidationSettings:
    require_email_confirmation: bool = False
    email_check_deliverability: bool = False


def _require_str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise FormatError(path, f"{path} must be a string")
    return value


def validate_name(value: Any, path: str = "name") -> str:
    text = _require_str(value, path)
    low, high = NAME_LENGTH
    if not low <= len(text) <= high:
        raise FormatError(path, f"Name length must be between {low} and {high} characters")
    if not NAME_RE.match(text):
        raise FormatError(path, "Name may contain only letters and spaces")
    return text


def validate_email_address(
    value: Any, check_deliverability: bool = False, path: str = "email"
) -> str:
    text = _require_str(value, path)
    low, high = EMAIL_LENGTH
    if not low <= len(text) <= high:
        raise FormatError(path, f"Email length must be between {low} and {high} characters")
    try:
        validate_email(text, check_deliverability=check_deliverability)
    except EmailNotValidError as exc:
        raise FormatError(path, f"Invalid email: {exc}") from exc
    return text


def validate_country(value: Any, catalog: GeoCatalog, path: str = "country") -> Country:
    text = _require_str(value, path)
    country = catalog.country(text)
    # codes are matched exactly; the catalog lookup itself is case-insensitive
    if country is None or country.code != text:
        raise CatalogReferenceError(path, f"no such country: {text}")
    return country


class RecordValidator:
    """
    Field, phone and location checks for one candidate record.

    Fields are checked in ``RECORD_FIELDS`` order and the first failure is
    raised; nothing is aggregated. ``strict`` makes every applicable field
    mandatory, otherwise only supplied fields are looked at.
    """

    def __init__(self, catalog: GeoCatalog, settings: Optional[ValidationSettings] = None):
        self.catalog = catalog
        self.settings = settings or ValidationSettings()

    def validate(self, candidate: Mapping[str, Any], strict: bool = True) -> Dict[str, Any]:
        for key in REQUIRED_FIELDS:
            value = candidate.get(key)
            if value is None:
                if strict:
                    raise CompletenessError(key, f"{key} is required")
                continue
            self._check_field(key, value, candidate)

        validate_location(candidate, self.catalog, strict=strict)
        return {key: candidate[key] for key in RECORD_FIELDS if candidate.get(key) is not None}

    def _check_field(self, key: str, value: Any, candidate: Mapping[str, Any]) -> None:
        if key == "name":
            validate_name(value)
        elif key == "phone":
            # country may still be unvalidated here; the phone check falls back to
            # "valid for any region" when it does not resolve
            validate_phone(value, candidate.get("country"), self.catalog)
        elif key == "email":
            validate_email_address(
                value, check_deliverability=self.settings.email_check_deliverability
            )
        elif key == "country":
            validate_country(value, self.catalog)


__all__ = [
    "EMAIL_LENGTH",
    "NAME_LENGTH",
    "NAME_RE",
    "RecordValidator",
    "ValidationSettings",
    "validate_country",
    "validate_email_address",
    "validate_name",
]
