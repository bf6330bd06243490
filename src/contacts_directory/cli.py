from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .common import build_engine, load_config
from .engine import RecordEngine
from .errors import InternalError, StoreError, ValidationError
from .logging_utils import configure_logging
from .models import ID_FIELD, RECORD_FIELDS, TIMESTAMP_FIELDS, ContactRecord, PatchRequest

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["row", "status", "path", "message", "error_type", "record_id"]


def _cell(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def read_records_csv(path: str) -> List[Dict[str, str]]:
    """Rows of a contacts CSV as dicts, with empty cells left out."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    rows: List[Dict[str, str]] = []
    for _, row in df.iterrows():
        values = {str(col): _cell(row[col]) for col in df.columns}
        rows.append({key: value for key, value in values.items() if value})
    return rows


def _record_row(record: ContactRecord) -> Dict[str, str]:
    doc = record.to_dict()
    row = {key: _cell(doc.get(key)) for key in (ID_FIELD, *RECORD_FIELDS)}
    for key in TIMESTAMP_FIELDS:
        stamp = doc.get(key)
        row[key] = stamp.isoformat() if isinstance(stamp, datetime) else _cell(stamp)
    return row


def _rejection(index: int, exc: ValidationError) -> Dict[str, Any]:
    return {
        "row": index,
        "status": "rejected",
        "path": exc.path,
        "message": exc.message,
        "error_type": exc.kind,
        "record_id": "",
    }


def _write_report(rows: List[Dict[str, Any]], out_dir: str, filename: str) -> str:
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, filename)
    report_df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    report_df.to_csv(out_path, index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)
    return out_path


def _summarize(rows: List[Dict[str, Any]]) -> Dict[str, int]:
    accepted = sum(1 for row in rows if row["status"] == "accepted")
    return {"rows_total": len(rows), "accepted": accepted, "rejected": len(rows) - accepted}


def import_records(engine: RecordEngine, csv_path: str, out_dir: str) -> Dict[str, int]:
    report: List[Dict[str, Any]] = []
    for index, payload in enumerate(read_records_csv(csv_path)):
        try:
            record = engine.create(payload)
        except ValidationError as exc:
            report.append(_rejection(index, exc))
            continue
        report.append(
            {
                "row": index,
                "status": "accepted",
                "path": "",
                "message": "",
                "error_type": "",
                "record_id": record.record_id or "",
            }
        )
    out_path = _write_report(report, out_dir, "import_report.csv")
    summary = _summarize(report)
    print(summary)
    print(f"Saved: {out_path}")
    return summary


def check_records(
    engine: RecordEngine, csv_path: str, out_dir: str, strict: bool = False
) -> Dict[str, int]:
    report: List[Dict[str, Any]] = []
    for index, payload in enumerate(read_records_csv(csv_path)):
        try:
            engine.validate_create(payload, strict=strict)
        except ValidationError as exc:
            report.append(_rejection(index, exc))
            continue
        report.append(
            {
                "row": index,
                "status": "accepted",
                "path": "",
                "message": "",
                "error_type": "",
                "record_id": "",
            }
        )
    out_path = _write_report(report, out_dir, "validation_report.csv")
    summary = _summarize(report)
    print(summary)
    print(f"Saved: {out_path}")
    return summary


def _selector_from_args(args: argparse.Namespace) -> Dict[str, str]:
    selector = {"email": args.email, "phone": args.phone, ID_FIELD: args.id}
    return {key: value for key, value in selector.items() if value}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate and maintain a contacts directory.")
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--store", type=str, default=None, help="JSON-lines store file")
    parser.add_argument("--catalog", type=str, default=None, help="Geo catalog YAML")
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    parser.add_argument(
        "--require-email-confirmation",
        action="store_true",
        default=None,
        help="Strict creates must carry a matching email_confirmation column",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    import_cmd = sub.add_parser("import", help="Create records from a CSV file")
    import_cmd.add_argument("--csv", dest="csv_path", required=True)

    check_cmd = sub.add_parser("check", help="Validate CSV rows without storing them")
    check_cmd.add_argument("--csv", dest="csv_path", required=True)
    check_cmd.add_argument("--strict", action="store_true")

    sub.add_parser("list", help="Print stored records as CSV")

    patch_cmd = sub.add_parser("patch", help="Apply a {$id, $set, $unset} JSON patch")
    patch_cmd.add_argument("--request", required=True, help="Patch request as JSON")

    delete_cmd = sub.add_parser("delete", help="Delete exactly one record")
    delete_cmd.add_argument("--email", default=None)
    delete_cmd.add_argument("--phone", default=None)
    delete_cmd.add_argument("--id", default=None)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args)
    configure_logging(config, level_override=args.log_level)
    out_dir = str(config.outputs.dir)

    try:
        engine = build_engine(config)
        if args.command == "import":
            summary = import_records(engine, args.csv_path, out_dir)
            return 1 if summary["rejected"] else 0
        if args.command == "check":
            summary = check_records(engine, args.csv_path, out_dir, strict=args.strict)
            return 1 if summary["rejected"] else 0
        if args.command == "list":
            rows = [_record_row(record) for record in engine.list_records()]
            columns = [ID_FIELD, *RECORD_FIELDS, *TIMESTAMP_FIELDS]
            pd.DataFrame(rows, columns=columns).to_csv(sys.stdout, index=False)
            return 0
        if args.command == "patch":
            try:
                request = PatchRequest.from_mapping(json.loads(args.request))
            except ValueError as exc:
                print(f"Invalid patch request: {exc}", file=sys.stderr)
                return 2
            record = engine.apply_patch(request)
            print(json.dumps(_record_row(record), ensure_ascii=False))
            return 0
        if args.command == "delete":
            deleted_id = engine.delete(_selector_from_args(args))
            print(f"Deleted: {deleted_id}")
            return 0
    except ValidationError as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False), file=sys.stderr)
        return 1
    except InternalError as exc:
        print(exc.message, file=sys.stderr)
        return 2
    except StoreError as exc:
        logger.error("Unable to open store: %s", exc)
        return 2
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
