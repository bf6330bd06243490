from __future__ import annotations

import copy
import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import StoreError, UniqueViolation
from .models import ID_FIELD, TIMESTAMP_FIELDS, UNIQUE_FIELDS
from .patch import merge_patch

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filter = Mapping[str, Any]


@dataclass(frozen=True)
class UpdateResult:
    affected_count: int
    affected_docs: List[Document] = field(default_factory=list)


def matches(doc: Mapping[str, Any], query: Filter) -> bool:
    return all(doc.get(key) == value for key, value in query.items())


class DocumentStore(ABC):
    """
    Key/value document store with equality filters.

    Implementations enforce their unique indexes on write and signal a
    violation with ``UniqueViolation``; any other failure is a ``StoreError``.
    """

    @abstractmethod
    def count(self, query: Filter) -> int: ...

    @abstractmethod
    def find(self, query: Filter) -> List[Document]: ...

    def find_one(self, query: Filter) -> Optional[Document]:
        found = self.find(query)
        return found[0] if found else None

    @abstractmethod
    def insert(self, doc: Mapping[str, Any]) -> Document: ...

    @abstractmethod
    def update(
        self,
        query: Filter,
        set_fields: Optional[Mapping[str, Any]] = None,
        unset_fields: Optional[Iterable[str]] = None,
        multi: bool = False,
        upsert: bool = False,
    ) -> UpdateResult: ...

    @abstractmethod
    def remove(self, query: Filter, multi: bool = False) -> int: ...


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Unsupported value in document: {type(value)!r}")


def _restore_timestamps(doc: Document) -> Document:
    for key in TIMESTAMP_FIELDS:
        raw = doc.get(key)
        if isinstance(raw, str):
            doc[key] = datetime.fromisoformat(raw)
    return doc


class MemoryStore(DocumentStore):
    """
    In-process store with unique indexes, optionally persisted as JSON lines.

    Every returned document is a copy; mutating it does not touch stored state.
    With ``path`` set, the whole file is rewritten after each successful write.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        unique_fields: Sequence[str] = UNIQUE_FIELDS,
    ):
        self.path = Path(path) if path else None
        self.unique_fields = tuple(unique_fields)
        self._docs: "OrderedDict[str, Document]" = OrderedDict()
        self._lock = threading.RLock()
        if self.path and self.path.exists():
            self._load()

    def count(self, query: Filter) -> int:
        with self._lock:
            return sum(1 for doc in self._docs.values() if matches(doc, query))

    def find(self, query: Filter) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._docs.values() if matches(doc, query)]

    def insert(self, doc: Mapping[str, Any]) -> Document:
        with self._lock:
            new_doc = copy.deepcopy(dict(doc))
            doc_id = str(new_doc.get(ID_FIELD) or uuid.uuid4().hex)
            if doc_id in self._docs:
                raise UniqueViolation(ID_FIELD, doc_id)
            new_doc[ID_FIELD] = doc_id
            self._check_unique(self._docs, new_doc, doc_id)
            working: "OrderedDict[str, Document]" = OrderedDict(self._docs)
            working[doc_id] = new_doc
            self._commit(working)
            return copy.deepcopy(new_doc)

    def update(
        self,
        query: Filter,
        set_fields: Optional[Mapping[str, Any]] = None,
        unset_fields: Optional[Iterable[str]] = None,
        multi: bool = False,
        upsert: bool = False,
    ) -> UpdateResult:
        set_fields = {k: v for k, v in (set_fields or {}).items() if k != ID_FIELD}
        unset_fields = [key for key in (unset_fields or ()) if key != ID_FIELD]
        with self._lock:
            targets = [doc_id for doc_id, doc in self._docs.items() if matches(doc, query)]
            if not multi:
                targets = targets[:1]
            if not targets:
                if not upsert:
                    return UpdateResult(affected_count=0)
                inserted = self.insert(merge_patch(query, set_fields, unset_fields))
                return UpdateResult(affected_count=1, affected_docs=[inserted])

            # stage every change first so a violation or failed write leaves the store untouched
            working: "OrderedDict[str, Document]" = OrderedDict(self._docs)
            for doc_id in targets:
                updated = merge_patch(working[doc_id], set_fields, unset_fields)
                updated[ID_FIELD] = doc_id
                self._check_unique(working, updated, doc_id)
                working[doc_id] = updated
            self._commit(working)
            return UpdateResult(
                affected_count=len(targets),
                affected_docs=[copy.deepcopy(self._docs[doc_id]) for doc_id in targets],
            )

    def remove(self, query: Filter, multi: bool = False) -> int:
        with self._lock:
            targets = [doc_id for doc_id, doc in self._docs.items() if matches(doc, query)]
            if not multi:
                targets = targets[:1]
            if targets:
                self._commit(
                    OrderedDict(
                        (doc_id, doc) for doc_id, doc in self._docs.items() if doc_id not in targets
                    )
                )
            return len(targets)

    def _check_unique(
        self, docs: Mapping[str, Document], candidate: Mapping[str, Any], doc_id: str
    ) -> None:
        for key in self.unique_fields:
            value = candidate.get(key)
            if value is None:
                continue
            for other_id, other in docs.items():
                if other_id != doc_id and other.get(key) == value:
                    raise UniqueViolation(key, value)

    def _load(self) -> None:
        assert self.path is not None
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    doc = _restore_timestamps(json.loads(line))
                    doc_id = str(doc.get(ID_FIELD) or uuid.uuid4().hex)
                    doc[ID_FIELD] = doc_id
                    self._docs[doc_id] = doc
        except (OSError, ValueError) as exc:
            raise StoreError(f"Unable to load store from {self.path}: {exc}") from exc
        logger.debug("Loaded %d record(s) from %s", len(self._docs), self.path)

    def _commit(self, docs: "OrderedDict[str, Document]") -> None:
        """Persist ``docs`` and only then make them the live state."""
        self._flush(docs)
        self._docs = docs

    def _flush(self, docs: Mapping[str, Document]) -> None:
        if self.path is None:
            return
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                for doc in docs.values():
                    handle.write(json.dumps(doc, default=_json_default, ensure_ascii=False))
                    handle.write("\n")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as exc:
            raise StoreError(f"Unable to write store to {self.path}: {exc}") from exc


__all__ = ["Document", "DocumentStore", "MemoryStore", "UpdateResult", "matches"]
