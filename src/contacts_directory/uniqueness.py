from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from .errors import Conflict, SelectorAmbiguous, SelectorEmpty, SelectorNotFound
from .models import ID_FIELD, SELECTOR_FIELDS, UNIQUE_FIELDS
from .patch import pick
from .store import Document, DocumentStore, matches

logger = logging.getLogger(__name__)


class UniquenessGuard:
    def __init__(self, store: DocumentStore):
        self.store = store

    def selector_query(self, selector: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return {key: value for key, value in pick(selector, SELECTOR_FIELDS).items() if value}

    def resolve(self, selector: Optional[Mapping[str, Any]]) -> Document:
        """
        Find the single stored document a selector points at.

        Each supplied key field is looked up on its own; the distinct documents
        found must collapse to exactly one, and that one must agree with every
        supplied field.
        """
        query = self.selector_query(selector)
        if not query:
            raise SelectorEmpty()

        found: Dict[str, Document] = {}
        for key, value in query.items():
            for doc in self.store.find({key: value}):
                found.setdefault(str(doc[ID_FIELD]), doc)

        if len(found) > 1:
            raise SelectorAmbiguous("You can change only one item at once")
        doc = next(iter(found.values()), None)
        if doc is None or not matches(doc, query):
            raise SelectorNotFound("You should pass object ID you want to change")
        return doc

    def ensure_unique(
        self,
        candidate: Mapping[str, Any],
        fields: Sequence[str] = UNIQUE_FIELDS,
        exclude_id: Optional[str] = None,
    ) -> None:
        """
        Raise ``Conflict`` for the first field whose value is held by another record.

        The conflict's path is the colliding field (``phone`` or ``email``), not
        the selector key, for creates and patches alike. ``exclude_id`` lets a
        patched record keep its own values.
        """
        for key in fields:
            value = candidate.get(key)
            if not value:
                continue
            if exclude_id is None:
                taken = self.store.count({key: value}) > 0
            else:
                taken = any(
                    str(doc[ID_FIELD]) != exclude_id for doc in self.store.find({key: value})
                )
            if taken:
                logger.info("Rejected duplicate %s", key)
                raise Conflict(key, value)


__all__ = ["UniquenessGuard"]
