# ova/api/routes_reports.py
from __future__ import annotations

from io import BytesIO
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.models.user import User
from ova.schemas.occurrence import OccurrenceListItem
from ova.schemas.report import ReportFiltersIn, ReportStatisticsOut
from ova.services import reports as svc
from ova.services.excel_export import build_occurrence_report_excel
from ova.utils.timez import utcnow

router = APIRouter()

EXPORT_FORMATS = ("csv", "json", "xlsx")


def _filters(payload: ReportFiltersIn) -> svc.ReportFilters:
    return svc.ReportFilters(**payload.model_dump())


@router.get("/filter-options")
def filter_options(db: Session = Depends(get_db),
                   me: User = Depends(current_user)):
    require_perm(me, "manage:reports")
    return svc.filter_options(db)


@router.post("/summary", response_model=List[OccurrenceListItem])
def summary(payload: ReportFiltersIn,
            db: Session = Depends(get_db),
            me: User = Depends(current_user)):
    require_perm(me, "manage:reports")
    return svc.summary_report(db, _filters(payload))


@router.post("/statistics", response_model=ReportStatisticsOut)
def statistics(payload: ReportFiltersIn,
               db: Session = Depends(get_db),
               me: User = Depends(current_user)):
    require_perm(me, "manage:reports")
    return svc.report_statistics(db, _filters(payload))


@router.post("/export")
def export(payload: ReportFiltersIn,
           format: str = Query("csv"),
           db: Session = Depends(get_db),
           me: User = Depends(current_user)):
    require_perm(me, "manage:reports")
    fmt = format.lower()
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=422,
                            detail=f"Unsupported export format: {format}")

    f = _filters(payload)
    occs = svc.summary_report(db, f)
    stamp = utcnow().strftime("%Y%m%d_%H%M%S")

    if fmt == "json":
        return svc.export_json(occs, svc.report_statistics(db, f))

    if fmt == "csv":
        data = svc.export_csv(occs).encode("utf-8")
        return StreamingResponse(
            BytesIO(data),
            media_type="text/csv",
            headers={
                "Content-Disposition":
                f'attachment; filename="occurrences_{stamp}.csv"'
            },
        )

    bio = BytesIO()
    build_occurrence_report_excel(bio, occs, svc.report_statistics(db, f))
    bio.seek(0)
    return StreamingResponse(
        bio,
        media_type=
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition":
            f'attachment; filename="occurrences_{stamp}.xlsx"'
        },
    )
