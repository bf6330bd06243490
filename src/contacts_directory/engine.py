from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .errors import (
    CompletenessError,
    Conflict,
    FormatError,
    InternalError,
    StoreError,
    UniqueViolation,
    ValidationError,
)
from .fields import RecordValidator, ValidationSettings
from .geo_catalog import GeoCatalog
from .models import (
    EMAIL_CONFIRMATION_FIELD,
    ID_FIELD,
    SETTABLE_FIELDS,
    UNIQUE_FIELDS,
    UNSETTABLE_FIELDS,
    ContactRecord,
    DeletePlan,
    PatchPlan,
    PatchRequest,
)
from .patch import changed_fields, merge_patch, pick, unset_keys
from .store import DocumentStore
from .uniqueness import UniquenessGuard

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
UnsetSpec = Union[Mapping[str, Any], Iterable[str], str, None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unset_flags(unset_fields: UnsetSpec) -> Dict[str, bool]:
    try:
        keys = set(unset_keys(unset_fields))
    except ValueError as exc:
        raise FormatError("unset", str(exc)) from exc
    return {key: True for key in UNSETTABLE_FIELDS if key in keys}


class RecordEngine:
    """
    Decides whether create, patch and delete requests are legal.

    The ``validate_*`` methods only read from the store and return a plan for
    the caller to persist; ``create``/``patch``/``delete`` also apply it. Each
    pipeline stops at the first failing step.
    """

    def __init__(
        self,
        store: DocumentStore,
        catalog: GeoCatalog,
        settings: Optional[ValidationSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or ValidationSettings()
        self.validator = RecordValidator(catalog, self.settings)
        self.guard = UniquenessGuard(store)
        self.clock = clock or utc_now

    @contextmanager
    def _pipeline(self, action: str) -> Iterator[None]:
        try:
            yield
        except ValidationError as exc:
            logger.info("Rejected %s at %s: %s", action, exc.path, exc.kind)
            raise
        except UniqueViolation as exc:
            # lost the race between the uniqueness check and the write
            logger.info("Rejected %s: unique index on %s", action, exc.field)
            raise Conflict(exc.field, exc.value) from exc
        except (StoreError, OSError) as exc:
            logger.exception("Store failure during %s", action)
            raise InternalError() from exc

    def _check_confirmation(self, candidate: Mapping[str, Any], strict: bool) -> None:
        confirmation = candidate.get(EMAIL_CONFIRMATION_FIELD)
        email = candidate.get("email")
        if confirmation and email and confirmation != email:
            raise FormatError(EMAIL_CONFIRMATION_FIELD, "Emails do not match")
        if strict and self.settings.require_email_confirmation and not confirmation:
            raise CompletenessError(EMAIL_CONFIRMATION_FIELD, "You should confirm email")

    def validate_create(self, candidate: Mapping[str, Any], strict: bool = True) -> ContactRecord:
        """
        Validate a new record.

        In strict mode the record must be complete, must not collide with a
        stored email or phone, and comes back stamped with ``created`` and
        ``updated``. Lenient mode checks only the supplied fields.
        """
        with self._pipeline("create"):
            self._check_confirmation(candidate, strict)
            cleaned = self.validator.validate(pick(candidate, SETTABLE_FIELDS), strict=strict)
            if strict:
                self.guard.ensure_unique(cleaned, UNIQUE_FIELDS)
                now = self.clock()
                cleaned["created"] = now
                cleaned["updated"] = now
        return ContactRecord.from_mapping(cleaned)

    def validate_patch(
        self,
        selector: Optional[Mapping[str, Any]],
        set_fields: Optional[Mapping[str, Any]] = None,
        unset_fields: UnsetSpec = None,
    ) -> PatchPlan:
        with self._pipeline("patch"):
            existing = self.guard.resolve(selector)
            existing_id = str(existing[ID_FIELD])
            set_map = pick(set_fields, SETTABLE_FIELDS)
            unset_map = _unset_flags(unset_fields)

            candidate = merge_patch(existing, set_map, unset_map)
            self.validator.validate(candidate, strict=True)
            changed = changed_fields(existing, candidate, UNIQUE_FIELDS)
            self.guard.ensure_unique(candidate, changed, exclude_id=existing_id)

            now = self.clock()
            set_map["updated"] = now
            candidate["updated"] = now
        return PatchPlan(
            existing_id=existing_id,
            set=set_map,
            unset=unset_map,
            candidate=ContactRecord.from_mapping(candidate),
        )

    def validate_delete(self, selector: Optional[Mapping[str, Any]]) -> DeletePlan:
        with self._pipeline("delete"):
            existing = self.guard.resolve(selector)
        return DeletePlan(existing_id=str(existing[ID_FIELD]))

    def check_edit(
        self,
        previous: Optional[Mapping[str, Any]],
        candidate: Mapping[str, Any],
        strict: bool = False,
    ) -> Dict[str, Any]:
        """
        Check an edit form against the values it started from, without a selector.

        Used for incremental feedback: ``previous`` must carry the old email
        and phone so changed key fields can be checked for collisions.
        """
        previous = previous or {}
        with self._pipeline("edit check"):
            if not previous.get("email"):
                raise CompletenessError("previous.email", "You should pass old email value")
            if not previous.get("phone"):
                raise CompletenessError("previous.phone", "You should pass old phone value")
            cleaned = self.validator.validate(pick(candidate, SETTABLE_FIELDS), strict=strict)
            if strict:
                self.guard.ensure_unique(
                    cleaned, changed_fields(previous, cleaned, UNIQUE_FIELDS)
                )
        return cleaned

    def create(self, candidate: Mapping[str, Any]) -> ContactRecord:
        record = self.validate_create(candidate, strict=True)
        with self._pipeline("create"):
            inserted = self.store.insert(record.to_dict(include_id=False))
        logger.debug("Created record %s", inserted[ID_FIELD])
        return ContactRecord.from_mapping(inserted)

    def patch(
        self,
        selector: Optional[Mapping[str, Any]],
        set_fields: Optional[Mapping[str, Any]] = None,
        unset_fields: UnsetSpec = None,
    ) -> ContactRecord:
        plan = self.validate_patch(selector, set_fields, unset_fields)
        with self._pipeline("patch"):
            result = self.store.update(
                {ID_FIELD: plan.existing_id},
                plan.set,
                plan.unset,
                multi=False,
                upsert=False,
            )
            if result.affected_count != 1:
                logger.error(
                    "Patch of %s affected %d record(s)", plan.existing_id, result.affected_count
                )
                raise InternalError()
            stored = self.store.find_one({ID_FIELD: plan.existing_id})
        if stored is None:
            logger.error("Record %s vanished after patch", plan.existing_id)
            raise InternalError()
        logger.debug("Patched record %s", plan.existing_id)
        return ContactRecord.from_mapping(stored)

    def apply_patch(self, request: PatchRequest) -> ContactRecord:
        return self.patch(request.selector, request.set, request.unset)

    def delete(self, selector: Optional[Mapping[str, Any]]) -> str:
        plan = self.validate_delete(selector)
        with self._pipeline("delete"):
            removed = self.store.remove({ID_FIELD: plan.existing_id}, multi=False)
        if removed != 1:
            logger.error("Delete of %s removed %d record(s)", plan.existing_id, removed)
            raise InternalError()
        logger.debug("Deleted record %s", plan.existing_id)
        return plan.existing_id

    def list_records(self) -> List[ContactRecord]:
        with self._pipeline("list"):
            docs = self.store.find({})
        return [ContactRecord.from_mapping(doc) for doc in docs]


__all__ = ["Clock", "RecordEngine", "utc_now"]
