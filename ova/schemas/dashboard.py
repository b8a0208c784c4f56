from typing import Optional

from pydantic import BaseModel


class DashboardOut(BaseModel):
    total_occurrences: int
    open_occurrences: int
    completed_occurrences: Optional[int] = None
    high_risk_occurrences: int
    resolution_rate: Optional[int] = None
    is_department: bool
    department_name: Optional[str] = None
