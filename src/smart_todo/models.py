from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

PriorityLabel = Literal["Low", "Medium", "High"]
TaskStatus = Literal["Pending", "In Progress", "Completed"]

PENDING: TaskStatus = "Pending"
IN_PROGRESS: TaskStatus = "In Progress"
COMPLETED: TaskStatus = "Completed"
TASK_STATUSES = (PENDING, IN_PROGRESS, COMPLETED)

T = TypeVar("T")


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Task(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: str = ""
    category: Optional[str] = None
    category_name: Optional[str] = None

    priority_label: PriorityLabel = "Medium"
    priority_score: float = 0.0

    deadline: datetime
    status: TaskStatus = PENDING

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("deadline", "created_at", "updated_at")
    @classmethod
    def as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None


def is_overdue(task: Task, now: Optional[datetime] = None) -> bool:
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    return task.deadline < now and task.status != COMPLETED


class TaskCreate(BaseModel):
    # Missing fields are reported by TaskRepository.create
    title: str = ""
    description: str = ""
    category: Optional[str] = None
    priority_label: PriorityLabel = "Medium"
    deadline: Optional[datetime] = None
    status: TaskStatus = PENDING


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority_label: Optional[PriorityLabel] = None
    deadline: Optional[datetime] = None
    status: Optional[TaskStatus] = None


class SuggestedTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    priority: PriorityLabel = "Medium"
    deadline: Optional[str] = None


class Insights(BaseModel):
    model_config = ConfigDict(extra="allow")

    summary: Optional[str] = None
    key_entities: List[str] = Field(default_factory=list)
    suggested_tasks: List[SuggestedTask] = Field(default_factory=list)


class ContextEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    content: str
    source_type: str = "Note"
    insights: Optional[Insights] = None
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)


class ContextCreate(BaseModel):
    content: str = ""
    source_type: str = ""
    insights: Optional[Dict[str, Any]] = None


class ContextUpdate(BaseModel):
    content: Optional[str] = None
    source_type: Optional[str] = None


class Page(BaseModel, Generic[T]):
    """Paginated list response from the backend, passed through untouched."""

    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[T] = Field(default_factory=list)
