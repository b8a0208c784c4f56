import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ova.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_audit(db: Session,
              *,
              user_id: Optional[int],
              action: str,
              table_name: str,
              record_id: Any,
              old_values: Optional[Dict[str, Any]] = None,
              new_values: Optional[Dict[str, Any]] = None) -> None:
    """
    One audit row per admin write or workflow step (REFER, ACTION, ...).
    Commits on its own; failures are rolled back and logged only.
    """
    entry = AuditLog(user_id=user_id,
                     action=action,
                     table_name=table_name,
                     record_id=str(record_id),
                     old_values=old_values,
                     new_values=new_values)
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Audit entry %s on %s:%s not stored", action,
                         table_name, record_id)
