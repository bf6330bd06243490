from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def pick(mapping: Optional[Mapping[str, Any]], keys: Sequence[str]) -> Dict[str, Any]:
    if not mapping:
        return {}
    return {key: mapping[key] for key in keys if key in mapping}


def unset_keys(unset_fields: Any) -> List[str]:
    """
    Keys named by an unset spec: a flag mapping, an iterable of keys or one key.

    Raises ``ValueError`` for anything else.
    """
    if unset_fields is None:
        return []
    if isinstance(unset_fields, str):
        return [unset_fields]
    if isinstance(unset_fields, Mapping):
        return [str(key) for key in unset_fields]
    if isinstance(unset_fields, Iterable):
        keys = list(unset_fields)
        if all(isinstance(key, str) for key in keys):
            return keys
    raise ValueError(f"Unset fields must be a mapping or a list of keys, got {unset_fields!r}")


def merge_patch(
    existing: Mapping[str, Any],
    set_fields: Optional[Mapping[str, Any]] = None,
    unset_fields: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    Apply ``$unset`` then ``$set`` to a copy of ``existing``.

    ``unset_fields`` may be a flag mapping (``{"city": 1}``), an iterable of keys
    or a single key. A key both unset and set ends up with the set value. ``existing`` is
    never modified.
    """
    candidate = copy.deepcopy(dict(existing))
    for key in unset_keys(unset_fields):
        candidate.pop(key, None)
    for key, value in (set_fields or {}).items():
        candidate[key] = copy.deepcopy(value)
    return candidate


def changed_fields(
    existing: Mapping[str, Any], candidate: Mapping[str, Any], keys: Sequence[str]
) -> List[str]:
    """Keys whose candidate value is non-empty and differs from the existing one."""
    return [
        key for key in keys if candidate.get(key) and candidate.get(key) != existing.get(key)
    ]


__all__ = ["changed_fields", "merge_patch", "pick", "unset_keys"]
