"""Task service — per-user task CRUD.

Learn: A TaskService is bound to one owner for its whole life. Every query
starts from _owned(), which adds `owner_id == <requester>`; filters from
the request are ANDed on top of it and can never replace it. Looking up
a task that belongs to someone else is the same as looking up one that
doesn't exist: NotFoundError, so ids of other users' tasks don't leak.

Update quirk kept on purpose: a status outside TASK_STATUSES is dropped
without an error, the rest of the update still applies.
"""

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.db.models import Task
from taskflow.errors import NotFoundError, ValidationError

logger = structlog.get_logger()

TASK_STATUSES = ("pending", "completed")


def _parse_task_id(task_id: Any) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(task_id))
    except ValueError:
        return None


class TaskService:
    """Business logic for task CRUD, scoped to a single owner."""

    def __init__(self, db: AsyncSession, owner_id: uuid.UUID):
        self.db = db
        self.owner_id = owner_id

    def _owned(self) -> Select:
        return select(Task).where(Task.owner_id == self.owner_id)

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        title: str,
        description: str = "",
        status: str = "pending",
    ) -> Task:
        """Create a task owned by this service's owner."""
        if not title or not title.strip():
            raise ValidationError("Please provide a task title")
        if status not in TASK_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(TASK_STATUSES)}")

        task = Task(
            title=title,
            description=description or "",
            status=status,
            owner_id=self.owner_id,
        )
        self.db.add(task)
        await self.db.commit()
        logger.info("taskflow.task.created", task_id=str(task.id), owner_id=str(self.owner_id))
        return task

    # ─── Read ────────────────────────────────────────────

    async def get_task(self, task_id: Any) -> Task:
        """Fetch one of the owner's tasks, NotFoundError otherwise."""
        key = _parse_task_id(task_id)
        if key is None:
            raise NotFoundError("Task not found")
        result = await self.db.execute(self._owned().where(Task.id == key))
        task = result.scalars().first()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def list_tasks(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        """List the owner's tasks, newest first.

        Learn: status is only applied when it's a known value; anything
        else is treated as "no status filter". search is a literal,
        case-insensitive substring match on title or description.
        """
        query = self._owned().order_by(Task.created_at.desc(), Task.id)
        if status in TASK_STATUSES:
            query = query.where(Task.status == status)
        if search:
            query = query.where(
                or_(
                    Task.title.icontains(search, autoescape=True),
                    Task.description.icontains(search, autoescape=True),
                )
            )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─── Update ──────────────────────────────────────────

    async def update_task(self, task_id: Any, fields: dict[str, Any]) -> Task:
        """Apply the fields present in `fields`; others keep their values."""
        task = await self.get_task(task_id)

        if "title" in fields:
            title = fields["title"]
            if not title or not title.strip():
                raise ValidationError("Task title cannot be empty")
            task.title = title
        if "description" in fields:
            task.description = fields["description"] or ""
        if "status" in fields:
            status = fields["status"]
            if status in TASK_STATUSES:
                task.status = status
            else:
                logger.info(
                    "taskflow.task.status_ignored",
                    task_id=str(task.id),
                    status=status,
                )

        await self.db.commit()
        return task

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, task_id: Any) -> uuid.UUID:
        task = await self.get_task(task_id)
        await self.db.delete(task)
        await self.db.commit()
        logger.info("taskflow.task.deleted", task_id=str(task.id), owner_id=str(self.owner_id))
        return task.id
