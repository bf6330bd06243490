from __future__ import annotations

from typing import Any

from .config_loader import DirectoryConfig, load_directory_config
from .engine import RecordEngine
from .errors import (
    CatalogReferenceError,
    CompletenessError,
    Conflict,
    FormatError,
    InternalError,
    RegionMismatch,
    SelectorAmbiguous,
    SelectorEmpty,
    SelectorNotFound,
    ValidationError,
)
from .fields import RecordValidator, ValidationSettings
from .geo_catalog import GeoCatalog, load_geo_catalog
from .models import ContactRecord, PatchRequest
from .store import DocumentStore, MemoryStore

__all__ = [
    "CatalogReferenceError",
    "CompletenessError",
    "Conflict",
    "ContactRecord",
    "DirectoryConfig",
    "DocumentStore",
    "FormatError",
    "GeoCatalog",
    "InternalError",
    "MemoryStore",
    "PatchRequest",
    "RecordEngine",
    "RecordValidator",
    "RegionMismatch",
    "SelectorAmbiguous",
    "SelectorEmpty",
    "SelectorNotFound",
    "ValidationError",
    "ValidationSettings",
    "build_engine",
    "load_config",
    "load_geo_catalog",
]


def load_config(args: Any) -> DirectoryConfig:
    return load_directory_config(args)


def build_engine(config: DirectoryConfig) -> RecordEngine:
    """Wire the catalog, store and validation settings described by ``config``."""
    catalog = load_geo_catalog(config.catalog.path)
    store = MemoryStore(path=config.store.path)
    settings = ValidationSettings(
        require_email_confirmation=config.validation.require_email_confirmation,
        email_check_deliverability=config.validation.email_check_deliverability,
    )
    return RecordEngine(store, catalog, settings=settings)
