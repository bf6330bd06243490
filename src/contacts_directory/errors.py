from __future__ import annotations

from typing import Dict, Optional


class DirectoryError(Exception):
    """Base class for every error raised by the contacts directory."""


class ValidationError(DirectoryError):
    """
    A client-facing rejection.

    Carries the offending field path and a human readable message that is safe
    to surface verbatim.
    """

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message, "type": self.kind}


class FormatError(ValidationError):
    pass


class InvalidPhoneFormat(FormatError):
    pass


class UnparsablePhone(FormatError):
    pass


class CatalogReferenceError(ValidationError):
    """Value is not present in the geo catalog (unknown country, state or city)."""


class CompletenessError(ValidationError):
    pass


class RegionMismatch(ValidationError):
    def __init__(self, inferred: Optional[str], declared: str, path: str = "phone"):
        super().__init__(
            path, f"Phone assigned to region {inferred} but user is from {declared}"
        )
        self.inferred = inferred
        self.declared = declared


class Conflict(ValidationError):
    def __init__(self, path: str, value: object = None):
        message = f"{value} already exists" if value else "Value already exists"
        super().__init__(path, message)
        self.value = value


class SelectorError(ValidationError):
    default_message = "Invalid selector"

    def __init__(self, message: Optional[str] = None, path: str = "selector"):
        super().__init__(path, message or self.default_message)


class SelectorEmpty(SelectorError):
    default_message = "You should pass ID object to edit"


class SelectorNotFound(SelectorError):
    default_message = "There is no record matching the selector"


class SelectorAmbiguous(SelectorError):
    default_message = "Selector points to multiple records"


class InternalError(DirectoryError):
    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class StoreError(DirectoryError):
    pass


class UniqueViolation(StoreError):
    def __init__(self, field: str, value: object):
        super().__init__(f"Unique constraint violated on {field}: {value!r}")
        self.field = field
        self.value = value


__all__ = [
    "CatalogReferenceError",
    "CompletenessError",
    "Conflict",
    "DirectoryError",
    "FormatError",
    "InternalError",
    "InvalidPhoneFormat",
    "RegionMismatch",
    "SelectorAmbiguous",
    "SelectorEmpty",
    "SelectorError",
    "SelectorNotFound",
    "StoreError",
    "UnparsablePhone",
    "UniqueViolation",
    "ValidationError",
]
