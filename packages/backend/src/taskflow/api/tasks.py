"""Task API routes.

Learn: Routes translate HTTP to TaskService calls. The service is built
from the authenticated user, so a handler has no way to reach another
user's tasks. Errors (400/404/503) are raised by the service and mapped
to responses by taskflow.errors.

- POST /tasks → create (owner = caller, whatever the body says)
- GET /tasks?status=&search= → list the caller's tasks
- GET /tasks/:id, PUT /tasks/:id, DELETE /tasks/:id → 404 unless owned
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.dependencies import get_current_user
from taskflow.db.engine import get_db
from taskflow.db.models import User
from taskflow.schemas.task import (
    TaskCreate,
    TaskDeleted,
    TaskList,
    TaskRead,
    TaskUpdate,
)
from taskflow.services.task_service import TaskService

router = APIRouter(prefix="/tasks")


def _task_svc(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TaskService:
    return TaskService(db, owner_id=user.id)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(body: TaskCreate, svc: TaskService = Depends(_task_svc)):
    """Create a new task, 'pending' unless a status is given."""
    return await svc.create_task(
        title=body.title,
        description=body.description or "",
        status=body.status,
    )


@router.get("", response_model=TaskList)
async def list_tasks(
    status: Optional[str] = Query(None, description="pending or completed"),
    search: Optional[str] = Query(None, description="Match in title or description"),
    svc: TaskService = Depends(_task_svc),
):
    """List the caller's tasks with optional filters."""
    tasks = await svc.list_tasks(status=status, search=search)
    return {"count": len(tasks), "tasks": tasks}


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: str, svc: TaskService = Depends(_task_svc)):
    """Get a single task by ID."""
    return await svc.get_task(task_id)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task; only fields present in the body change."""
    return await svc.update_task(task_id, body.model_dump(exclude_unset=True))


@router.delete("/{task_id}", response_model=TaskDeleted)
async def delete_task(task_id: str, svc: TaskService = Depends(_task_svc)):
    """Delete a task."""
    deleted_id = await svc.delete_task(task_id)
    return {"id": deleted_id, "deleted": True}
