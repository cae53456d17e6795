from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

MANAGER_ROLE = "Manager"
ROLES = ("Manager", "Service", "Detail", "Sales")


class CompletionKind(str, Enum):
    checkbox = "checkbox"
    dropdown = "dropdown"


@dataclass(frozen=True)
class Stage:
    id: Optional[str]
    order: int
    name: str
    required_role: str
    completion_kind: CompletionKind = CompletionKind.checkbox
    target_hours: Optional[int] = None
    is_terminal: bool = False
    completion_field: str = ""
    list_name: Optional[str] = None
    color: str = "#6B7280"


@dataclass(frozen=True)
class Vehicle:
    id: str
    intake_timestamp: datetime
    archived: bool = False
    stock_num: Optional[str] = None
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None

    @property
    def description(self) -> str:
        parts = [p for p in (self.year, self.make, self.model) if p]
        desc = " ".join(parts)
        if self.stock_num:
            desc = f"{desc} #{self.stock_num}".strip()
        return desc


@dataclass(frozen=True)
class Completion:
    vehicle_id: str
    stage_id: str
    value: Optional[str]
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    cleared_at: Optional[datetime] = None

    @property
    def satisfied(self) -> bool:
        return bool(self.value) and self.cleared_at is None


@dataclass
class StageMetric:
    stage: Stage
    count: int
    avg_age_days: float
    overdue_count: int


# Returned when every stage is satisfied but no stage is flagged terminal.
PENDING = Stage(id=None, order=0, name="Pending", required_role=MANAGER_ROLE)
