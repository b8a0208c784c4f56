from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ova.core.config import settings
from ova.models.occurrence import Occurrence
from ova.utils.timez import utcnow

logger = logging.getLogger(__name__)

PADDING = 4


def year_prefix(now: Optional[datetime] = None,
                prefix: Optional[str] = None) -> str:
    """OCC25- for 2025."""
    now = now or utcnow()
    return f"{prefix or settings.OCCURRENCE_NO_PREFIX}{now.strftime('%y')}-"


def _seq_of(occurrence_no: str) -> int:
    try:
        return int(occurrence_no.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


def next_occurrence_no(
    db: Session,
    *,
    now: Optional[datetime] = None,
    prefix: Optional[str] = None,
) -> str:
    """
    Highest number under this year's prefix + 1, zero padded.

    Longer strings sort first so OCC25-10000 beats OCC25-9999.
    occurrence_no is unique, so two concurrent callers that read the
    same max fail on insert instead of sharing a number.
    """
    yp = year_prefix(now, prefix)

    last_no = (db.query(Occurrence.occurrence_no).filter(
        Occurrence.occurrence_no.like(f"{yp}%")).order_by(
            func.length(Occurrence.occurrence_no).desc(),
            Occurrence.occurrence_no.desc(),
        ).with_for_update().limit(1).scalar())

    n = _seq_of(last_no) + 1 if last_no else 1
    occurrence_no = f"{yp}{str(n).zfill(PADDING)}"
    logger.info("Allocated occurrence number %s", occurrence_no)
    return occurrence_no
