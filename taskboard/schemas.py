"""
Pydantic schemas for the taskboard API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class SetupResponse(BaseModel):
    userId: str


class CreateProjectRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    projectName: str


class ProjectSummary(BaseModel):
    projectId: str
    projectName: str


class TaskPayload(BaseModel):
    taskName: str
    dueDate: datetime
    priority: str
    reminder: str
    taskCompleted: bool = False


class AddTaskRequest(BaseModel):
    userId: str
    projectId: str
    task: TaskPayload


class UpdateTaskRequest(BaseModel):
    userId: str
    projectId: str
    taskId: str | int
    updatedFields: dict[str, Any]


class DeleteTasksRequest(BaseModel):
    # Validated by the store so a non-list gets the same error as a missing one.
    tasks: Optional[Any] = None


class DeleteProjectRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    projectId: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    message: str


class DeleteTasksResponse(BaseModel):
    message: str
    project: dict
