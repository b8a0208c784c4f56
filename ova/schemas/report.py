from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReportFiltersIn(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    status_ids: List[int] = Field(default_factory=list)
    severity_ids: List[int] = Field(default_factory=list)
    department_ids: List[int] = Field(default_factory=list)
    location_ids: List[int] = Field(default_factory=list)
    incident_ids: List[int] = Field(default_factory=list)
    patient_involved: Optional[bool] = None


class CountRow(BaseModel):
    id: Optional[int] = None
    name: str
    count: int


class ReportStatisticsOut(BaseModel):
    total_occurrences: int
    patient_involved: int
    by_status: List[CountRow] = []
    by_severity: List[CountRow] = []
    by_department: List[CountRow] = []
    by_location: List[CountRow] = []
    by_incident: List[CountRow] = []
