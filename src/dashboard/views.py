from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from smart_todo.models import COMPLETED, IN_PROGRESS, PENDING, Task, is_overdue

ALL = "all"
UNCATEGORIZED = "uncategorized"

TAB_STATUSES = {
    "pending": PENDING,
    "progress": IN_PROGRESS,
    "completed": COMPLETED,
}

SORT_KEYS = ("deadline", "priority", "created", "title")
PRIORITY_RANK = {"High": 2, "Medium": 1, "Low": 0}


@dataclass(frozen=True)
class TaskFilters:
    search: str = ""
    priority: str = ALL
    status: str = ALL
    category: str = ALL
    tab: str = ALL

    def matches(self, task: Task) -> bool:
        term = self.search.strip().lower()
        if term and term not in task.title.lower() and term not in task.description.lower():
            return False
        if self.priority != ALL and task.priority_label != self.priority:
            return False
        if self.status != ALL and task.status != self.status:
            return False
        if self.category != ALL:
            if self.category == UNCATEGORIZED:
                if task.category_name:
                    return False
            elif task.category_name != self.category:
                return False
        if self.tab != ALL and task.status != TAB_STATUSES.get(self.tab):
            return False
        return True


def filter_tasks(tasks: Iterable[Task], filters: TaskFilters) -> List[Task]:
    return [t for t in tasks if filters.matches(t)]


def sort_tasks(tasks: Iterable[Task], key: Optional[str] = None) -> List[Task]:
    tasks = list(tasks)
    if key == "deadline":
        return sorted(tasks, key=lambda t: t.deadline)
    if key == "priority":
        return sorted(tasks, key=lambda t: (PRIORITY_RANK[t.priority_label], t.priority_score), reverse=True)
    if key == "created":
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(tasks, key=lambda t: t.created_at or epoch, reverse=True)
    if key == "title":
        return sorted(tasks, key=lambda t: t.title.lower())
    return tasks


def task_stats(tasks: Iterable[Task], now: Optional[datetime] = None) -> dict:
    tasks = list(tasks)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == COMPLETED)
    return {
        "total": total,
        "pending": sum(1 for t in tasks if t.status == PENDING),
        "in_progress": sum(1 for t in tasks if t.status == IN_PROGRESS),
        "completed": completed,
        "overdue": sum(1 for t in tasks if is_overdue(t, now)),
        "completion_rate": round(completed / total * 100) if total else 0,
    }


def unique_categories(tasks: Iterable[Task]) -> List[str]:
    seen: List[str] = []
    for t in tasks:
        if t.category_name and t.category_name not in seen:
            seen.append(t.category_name)
    return seen
