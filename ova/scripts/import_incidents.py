# FILE: ova/scripts/import_incidents.py
"""
Load the incident taxonomy from a CSV or JSON export.

Rows carry `id,name,parentId,level`. Pass one creates every incident and
remembers old id -> new id; pass two links parents through that map.

    python -m ova.scripts.import_incidents incidents.csv --replace
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ova.db.session import SessionLocal
from ova.models.incident import Incident, Severity
from ova.models.occurrence import Occurrence

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = "LOW"
NO_PARENT = {"", "0", "null", "none"}


def load_rows(path: str) -> List[Dict[str, str]]:
    p = Path(path)
    if p.suffix.lower() == ".json":
        with p.open(encoding="utf-8") as f:
            data = json.load(f)
        return [{k: ("" if v is None else str(v)) for k, v in row.items()}
                for row in data]
    with p.open(newline="", encoding="utf-8-sig") as f:
        return list(csv.DictReader(f))


def _clean(v: Optional[str]) -> str:
    return (v or "").strip()


def _closes_loop(parent_of: Dict[str, str], child: str, parent: str) -> bool:
    node: Optional[str] = parent
    while node is not None:
        if node == child:
            return True
        node = parent_of.get(node)
    return False


def clear_incidents(db: Session) -> int:
    if db.query(Occurrence.id).first():
        raise ValueError("Occurrences reference the current incidents; "
                         "delete them before replacing the taxonomy")
    db.execute(update(Incident).values(parent_id=None))
    n = db.query(Incident).delete(synchronize_session=False)
    db.flush()
    return n


def import_rows(db: Session,
                rows: Iterable[Dict[str, str]],
                *,
                replace: bool = False,
                severity_name: str = DEFAULT_SEVERITY) -> Dict[str, int]:
    severity = db.query(Severity).filter(Severity.name == severity_name).first()
    if severity is None:
        raise ValueError(f"Severity {severity_name} is not configured")

    rows = [r for r in rows if _clean(r.get("id")) and _clean(r.get("name"))]

    removed = clear_incidents(db) if replace else 0

    # pass 1: create, keep the mapping
    id_map: Dict[str, Incident] = {}
    for r in rows:
        old_id = _clean(r.get("id"))
        inc = Incident(name=_clean(r.get("name")),
                       old_id=old_id,
                       category=_clean(r.get("level")) or None,
                       severity_id=severity.id)
        db.add(inc)
        id_map[old_id] = inc
    db.flush()

    # pass 2: parents
    linked = skipped = 0
    parent_of: Dict[str, str] = {}
    for r in rows:
        old_id = _clean(r.get("id"))
        parent_old = _clean(r.get("parentId"))
        if parent_old.lower() in NO_PARENT:
            continue
        parent = id_map.get(parent_old)
        if parent is None:
            logger.warning("Parent incident %s not found for incident %s",
                           parent_old, old_id)
            skipped += 1
            continue
        if _closes_loop(parent_of, old_id, parent_old):
            logger.warning("Parent %s of incident %s would make a loop",
                           parent_old, old_id)
            skipped += 1
            continue
        parent_of[old_id] = parent_old
        id_map[old_id].parent_id = parent.id
        linked += 1

    db.commit()
    logger.info("Imported %d incidents (%d linked, %d parents missing, %d removed)",
                len(id_map), linked, skipped, removed)
    return {
        "created": len(id_map),
        "linked": linked,
        "skipped": skipped,
        "removed": removed,
    }


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Import the incident taxonomy (id,name,parentId,level).")
    parser.add_argument("path", help="CSV or JSON file")
    parser.add_argument("--replace",
                        action="store_true",
                        help="Delete existing incidents first.")
    parser.add_argument("--severity",
                        default=DEFAULT_SEVERITY,
                        help="Severity name given to imported incidents.")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        import_rows(db,
                    load_rows(args.path),
                    replace=args.replace,
                    severity_name=args.severity)
    finally:
        db.close()


if __name__ == "__main__":
    main()
