# FILE: ova/services/incidents.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from ova.models.incident import Incident, Severity
from ova.models.occurrence import Occurrence

# main -> sub -> sub-sub
MAX_DEPTH = 3


class IncidentError(Exception):

    def __init__(self, msg: str, status_code: int = 400):
        super().__init__(msg)
        self.status_code = status_code


def get_incident(db: Session, incident_id: int) -> Incident:
    inc = db.get(Incident, incident_id)
    if not inc:
        raise IncidentError("Incident not found", 404)
    return inc


def top_level_incidents(db: Session) -> List[Incident]:
    return (db.query(Incident).options(selectinload(
        Incident.children)).filter(Incident.parent_id.is_(None)).order_by(
            Incident.name).all())


def sub_incidents(db: Session, parent_id: int) -> List[Incident]:
    return (db.query(Incident).filter(
        Incident.parent_id == parent_id).order_by(Incident.name).all())


def top_level_incident(db: Session,
                       incident_id: Optional[int]) -> Optional[Incident]:
    """
    Walk parent links up to the root. Cycles (bad imports) stop the walk.
    """
    if not incident_id:
        return None
    inc = db.get(Incident, incident_id)
    seen = set()
    while inc is not None and inc.parent_id and inc.id not in seen:
        seen.add(inc.id)
        inc = inc.parent
    return inc


def _node(inc: Incident, depth: int) -> Dict[str, Any]:
    out = {
        "id": inc.id,
        "name": inc.name,
        "severity_id": inc.severity_id,
        "parent_id": inc.parent_id,
        "children": [],
    }
    if depth < MAX_DEPTH:
        out["children"] = [_node(c, depth + 1) for c in inc.children]
    return out


def incident_hierarchy(db: Session) -> List[Dict[str, Any]]:
    """Three-level tree rooted at the top-level incidents."""
    roots = (db.query(Incident).options(
        selectinload(Incident.children).selectinload(
            Incident.children)).filter(Incident.parent_id.is_(None)).order_by(
                Incident.name).all())
    return [_node(r, 1) for r in roots]


def _check_severity(db: Session, severity_id: int) -> None:
    if not db.get(Severity, severity_id):
        raise IncidentError("Severity not found", 404)


def _check_parent(db: Session, parent_id: Optional[int],
                  self_id: Optional[int] = None) -> None:
    if parent_id is None:
        return
    if self_id is not None and parent_id == self_id:
        raise IncidentError("Incident cannot be its own parent", 422)
    parent = db.get(Incident, parent_id)
    if not parent:
        raise IncidentError("Parent incident not found", 404)

    # parent's own depth must leave room for this node
    depth = 1
    node = parent
    seen = {node.id}
    while node.parent_id is not None:
        if node.parent_id in seen or (self_id is not None
                                      and node.parent_id == self_id):
            raise IncidentError("Incident hierarchy cannot be circular", 422)
        seen.add(node.parent_id)
        depth += 1
        node = node.parent
    if depth >= MAX_DEPTH:
        raise IncidentError("Incident hierarchy is limited to three levels",
                            422)


def create_incident(db: Session, *, name: str, severity_id: int,
                    parent_id: Optional[int] = None) -> Incident:
    _check_severity(db, severity_id)
    _check_parent(db, parent_id)
    inc = Incident(name=name.strip(),
                   severity_id=severity_id,
                   parent_id=parent_id)
    db.add(inc)
    db.commit()
    db.refresh(inc)
    return inc


def update_incident(db: Session, inc: Incident, data: Dict[str, Any]) -> Incident:
    if "severity_id" in data and data["severity_id"] is not None:
        _check_severity(db, data["severity_id"])
        inc.severity_id = data["severity_id"]
    if "parent_id" in data:
        _check_parent(db, data["parent_id"], self_id=inc.id)
        inc.parent_id = data["parent_id"]
    if data.get("name"):
        inc.name = data["name"].strip()
    db.commit()
    db.refresh(inc)
    return inc


def delete_incident(db: Session, inc: Incident) -> None:
    if db.query(Occurrence.id).filter(
            Occurrence.incident_id == inc.id).first():
        raise IncidentError("Incident is used by occurrences", 409)
    if inc.children:
        raise IncidentError("Incident has sub-incidents", 409)
    db.delete(inc)
    db.commit()


def severities(db: Session) -> List[Severity]:
    return db.query(Severity).order_by(Severity.level).all()


def severities_at_or_above(db: Session, severity_id: int) -> List[Severity]:
    base = db.get(Severity, severity_id)
    if not base:
        return []
    return (db.query(Severity).filter(Severity.level >= base.level).order_by(
        Severity.level).all())
