import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from api.dependencies import get_context_repository, get_task_repository
from api.metrics import TASKS_CREATED_TOTAL
from dashboard.views import TaskFilters, filter_tasks, sort_tasks, task_stats, unique_categories
from export.csv_utils import parse_csv_to_tasks, tasks_to_csv
from repositories.contexts import ContextRepository
from repositories.tasks import TaskRepository
from smart_todo.errors import TodoError
from smart_todo.models import TaskCreate, TaskStatus, TaskUpdate

router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_TASKS = 6
RECENT_CONTEXTS = 4


class StatusIn(BaseModel):
    status: TaskStatus


@router.get("/dashboard")
async def dashboard(
    tasks: TaskRepository = Depends(get_task_repository),
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    """Recent tasks and contexts plus headline stats."""
    task_page, context_page = await asyncio.gather(tasks.list(), contexts.list())
    return {
        "tasks": [t.model_dump(mode="json") for t in task_page.results[:RECENT_TASKS]],
        "contexts": [c.model_dump(mode="json") for c in context_page.results[:RECENT_CONTEXTS]],
        "stats": task_stats(task_page.results),
    }


@router.get("/tasks")
async def list_tasks(
    search: str = "",
    priority: str = "all",
    status: str = "all",
    category: str = "all",
    tab: str = "all",
    sort: Optional[str] = None,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    page = await tasks.list()
    filters = TaskFilters(
        search=search, priority=priority, status=status, category=category, tab=tab
    )
    visible = sort_tasks(filter_tasks(page.results, filters), sort)
    return {
        "count": page.count,
        "next": page.next,
        "previous": page.previous,
        "results": [t.model_dump(mode="json") for t in visible],
        "stats": task_stats(page.results),
        "categories": unique_categories(page.results),
    }


@router.post("/tasks", status_code=201)
async def create_task(
    payload: TaskCreate,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    created = await tasks.create(payload)
    TASKS_CREATED_TOTAL.inc()
    return created.model_dump(mode="json")


@router.get("/tasks/export")
async def export_tasks(tasks: TaskRepository = Depends(get_task_repository)) -> Response:
    page = await tasks.list()
    return Response(
        content=tasks_to_csv(page.results),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="tasks.csv"'},
    )


@router.post("/tasks/import")
async def import_tasks(
    request: Request,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    """Create tasks from an uploaded CSV body, row by row."""
    content = (await request.body()).decode("utf-8-sig")
    rows = parse_csv_to_tasks(content)

    results = {"created": 0, "failed": 0, "errors": []}
    for row in rows:
        try:
            await tasks.create(row)
        except TodoError as e:
            results["failed"] += 1
            results["errors"].append(f'Failed to import "{row["title"]}": {e.message}')
            continue
        results["created"] += 1
        TASKS_CREATED_TOTAL.inc()

    logger.info(f"CSV import: {results['created']} created, {results['failed']} failed")
    return {"results": results, "totalRows": len(rows)}


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, tasks: TaskRepository = Depends(get_task_repository)) -> dict:
    return (await tasks.get(task_id)).model_dump(mode="json")


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    return (await tasks.update(task_id, payload)).model_dump(mode="json")


@router.patch("/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: StatusIn,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    return (await tasks.update_status(task_id, payload.status)).model_dump(mode="json")


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    confirm: bool = False,
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    await tasks.delete(task_id, confirmed=confirm)
    return {"status": "deleted", "id": task_id}
