from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from .patch import unset_keys

ID_FIELD = "_id"

# order matters: validation is fail-fast and reports the first failing field
RECORD_FIELDS: Tuple[str, ...] = ("name", "phone", "email", "country", "state", "city")
REQUIRED_FIELDS: Tuple[str, ...] = ("name", "phone", "email", "country")
SETTABLE_FIELDS: Tuple[str, ...] = ("phone", "name", "email", "country", "state", "city")
UNSETTABLE_FIELDS: Tuple[str, ...] = ("state", "city")
UNIQUE_FIELDS: Tuple[str, ...] = ("phone", "email")
SELECTOR_FIELDS: Tuple[str, ...] = ("phone", "email", ID_FIELD)
TIMESTAMP_FIELDS: Tuple[str, ...] = ("created", "updated")

EMAIL_CONFIRMATION_FIELD = "email_confirmation"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class ContactRecord:
    name: str = ""
    phone: str = ""
    email: str = ""
    country: str = ""
    state: Optional[str] = None
    city: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    record_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ContactRecord":
        return cls(
            name=str(payload.get("name", "") or ""),
            phone=str(payload.get("phone", "") or ""),
            email=str(payload.get("email", "") or ""),
            country=str(payload.get("country", "") or ""),
            state=_optional_str(payload.get("state")),
            city=_optional_str(payload.get("city")),
            created=payload.get("created"),
            updated=payload.get("updated"),
            record_id=_optional_str(payload.get(ID_FIELD)),
        )

    def to_dict(self, include_id: bool = True) -> Dict[str, Any]:
        """Document form: absent optional fields are omitted rather than stored as None."""
        doc: Dict[str, Any] = {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "country": self.country,
        }
        if self.state is not None:
            doc["state"] = self.state
        if self.city is not None:
            doc["city"] = self.city
        if self.created is not None:
            doc["created"] = self.created
        if self.updated is not None:
            doc["updated"] = self.updated
        if include_id and self.record_id is not None:
            doc[ID_FIELD] = self.record_id
        return doc

    def replace(self, **changes: Any) -> "ContactRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class PatchRequest:
    selector: Dict[str, Any] = field(default_factory=dict)
    set: Dict[str, Any] = field(default_factory=dict)
    unset: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Any) -> "PatchRequest":
        """
        Build a request from ``{$id, $set, $unset}`` or ``{selector, set, unset}``.

        ``$unset`` may be a flag mapping or a list of keys and is normalised to
        ``{key: True}``. Malformed shapes raise ``ValueError``.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("Patch request must be an object")
        selector = payload.get("$id") or payload.get("selector") or {}
        set_fields = payload.get("$set") or payload.get("set") or {}
        if not isinstance(selector, Mapping):
            raise ValueError("Patch selector must be an object")
        if not isinstance(set_fields, Mapping):
            raise ValueError("Patch $set must be an object")
        unset_fields = payload.get("$unset") or payload.get("unset")
        return cls(
            selector=dict(selector),
            set=dict(set_fields),
            unset={key: True for key in unset_keys(unset_fields)},
        )


@dataclass(frozen=True)
class PatchPlan:
    """An accepted patch, ready to be applied with ``store.update``."""

    existing_id: str
    set: Dict[str, Any]
    unset: Dict[str, Any]
    candidate: ContactRecord


@dataclass(frozen=True)
class DeletePlan:
    existing_id: str


__all__ = [
    "ContactRecord",
    "DeletePlan",
    "EMAIL_CONFIRMATION_FIELD",
    "ID_FIELD",
    "PatchPlan",
    "PatchRequest",
    "RECORD_FIELDS",
    "REQUIRED_FIELDS",
    "SELECTOR_FIELDS",
    "SETTABLE_FIELDS",
    "TIMESTAMP_FIELDS",
    "UNIQUE_FIELDS",
    "UNSETTABLE_FIELDS",
]
