"""Pydantic schemas for tasks.

Learn: Separate schemas for create/update/read keeps the API clean.
- TaskCreate: what you POST to create a task (owner is never accepted)
- TaskUpdate: what you PUT to modify a task (all optional, only sent keys apply)
- TaskRead: what the API returns
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(default="")
    status: str = Field(default="pending", pattern=r"^(pending|completed)$")


class TaskUpdate(BaseModel):
    """Partial update — use model_dump(exclude_unset=True).

    status takes any JSON value: anything other than "pending" or
    "completed" is ignored by TaskService, the other fields still apply.
    """
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    status: Optional[Any] = None


class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    status: str
    owner_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskList(BaseModel):
    count: int
    tasks: list[TaskRead]


class TaskDeleted(BaseModel):
    id: uuid.UUID
    deleted: bool = True
