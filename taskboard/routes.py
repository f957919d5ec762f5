"""
HTTP routes for the taskboard API.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from taskboard.config import get_settings
from taskboard.dependencies import get_store
from taskboard.schemas import (
    AddTaskRequest,
    CreateProjectRequest,
    DeleteProjectRequest,
    DeleteTasksRequest,
    DeleteTasksResponse,
    MessageResponse,
    ProjectSummary,
    SetupResponse,
    UpdateTaskRequest,
)
from taskboard.store import UserProjectStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/setup", response_model=SetupResponse)
def setup_user(store: UserProjectStore = Depends(get_store)):
    """Provision a fresh user id for a new client."""
    return SetupResponse(userId=store.provision_user())


@router.post("/project")
def create_project(
    payload: CreateProjectRequest,
    store: UserProjectStore = Depends(get_store),
):
    """
    Append a project to the user (creating the user if needed), then send the
    client to the refreshed project list.
    """
    store.create_project(payload.userId, payload.projectName)
    url = f"{get_settings().api_prefix}/projects/{quote(payload.userId, safe='')}"
    return RedirectResponse(url=url, status_code=303)


@router.get("/projects/{user_id}", response_model=list[ProjectSummary])
def list_projects(user_id: str, store: UserProjectStore = Depends(get_store)):
    return store.list_projects(user_id)


@router.post("/task", response_model=MessageResponse)
def add_task(payload: AddTaskRequest, store: UserProjectStore = Depends(get_store)):
    store.add_task(
        payload.userId, payload.projectId, payload.task.model_dump(mode="json")
    )
    return MessageResponse(message="added successfully")


@router.patch("/task")
def update_task(
    payload: UpdateTaskRequest, store: UserProjectStore = Depends(get_store)
):
    # None (serialized as null) when nothing matched.
    return store.update_task(
        payload.userId,
        payload.projectId,
        str(payload.taskId),
        payload.updatedFields,
    )


@router.delete("/projects/{project_id}", response_model=DeleteTasksResponse)
def delete_tasks(
    project_id: str,
    payload: Optional[DeleteTasksRequest] = None,
    store: UserProjectStore = Depends(get_store),
):
    task_ids = payload.tasks if payload else None
    project = store.delete_tasks(project_id, task_ids)
    return DeleteTasksResponse(message="Tasks deleted successfully", project=project)


@router.get("/projects/{project_id}/tasks")
def list_tasks(project_id: str, store: UserProjectStore = Depends(get_store)):
    return store.list_tasks(project_id)


@router.delete("/project", response_model=list[ProjectSummary])
def delete_project(
    payload: DeleteProjectRequest, store: UserProjectStore = Depends(get_store)
):
    return store.delete_project(payload.userId, payload.projectId)
