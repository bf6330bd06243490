from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]


@dataclass
class OutputsConfig:
    dir: Path


@dataclass
class StoreConfig:
    path: Optional[Path] = None


@dataclass
class CatalogConfig:
    path: Optional[Path] = None


@dataclass
class ValidationConfig:
    require_email_confirmation: bool = False
    email_check_deliverability: bool = False


DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    format: str = DEFAULT_LOG_FORMAT


@dataclass
class DirectoryConfig:
    outputs: OutputsConfig
    store: StoreConfig
    catalog: CatalogConfig
    validation: ValidationConfig
    logging: LoggingConfig


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


def load_directory_config(args: argparse.Namespace) -> DirectoryConfig:
    config_data = _load_yaml(getattr(args, "config", None))
    outputs_cfg = config_data.get("outputs", {}) or {}
    store_cfg = config_data.get("store", {}) or {}
    catalog_cfg = config_data.get("catalog", {}) or {}
    validation_cfg = config_data.get("validation", {}) or {}
    logging_cfg = config_data.get("logging", {}) or {}

    outputs_dir = Path(getattr(args, "out_dir", None) or outputs_cfg.get("dir") or os.getcwd())

    store = StoreConfig(path=_optional_path(getattr(args, "store", None) or store_cfg.get("path")))
    catalog = CatalogConfig(
        path=_optional_path(getattr(args, "catalog", None) or catalog_cfg.get("path"))
    )

    validation = ValidationConfig(
        require_email_confirmation=(
            validation_cfg.get("require_email_confirmation", False)
            if getattr(args, "require_email_confirmation", None) is None
            else bool(getattr(args, "require_email_confirmation"))
        ),
        email_check_deliverability=getattr(args, "email_check_deliverability", None)
        or validation_cfg.get("email_check_deliverability", False),
    )

    arg_level = getattr(args, "log_level", None)
    effective_level = (arg_level or logging_cfg.get("level") or "WARNING").upper()

    return DirectoryConfig(
        outputs=OutputsConfig(dir=outputs_dir),
        store=store,
        catalog=catalog,
        validation=validation,
        logging=LoggingConfig(
            level=effective_level, format=logging_cfg.get("format") or DEFAULT_LOG_FORMAT
        ),
    )
