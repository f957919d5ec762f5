"""
Document model for the user aggregate: a user owns projects, a project owns tasks.

Documents are plain dataclasses that convert to and from the camelCase JSON
shape persisted by the stores and returned by the API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

# JSON field name -> TaskDocument attribute.
TASK_FIELDS = {
    "taskName": "task_name",
    "dueDate": "due_date",
    "priority": "priority",
    "reminder": "reminder",
    "taskCompleted": "task_completed",
}


def _as_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass
class TaskDocument:
    task_id: str
    task_name: Optional[str] = None
    due_date: Optional[str] = None
    priority: Optional[str] = None
    reminder: Optional[str] = None
    task_completed: Optional[bool] = None

    @classmethod
    def from_fields(cls, task_id: Any, fields: dict) -> "TaskDocument":
        """
        Build a task from JSON-named fields. Unknown keys (including any
        identifier inside `fields`) are dropped; `task_id` always wins.
        """
        values = {
            attr: _as_json_value(fields[name])
            for name, attr in TASK_FIELDS.items()
            if name in fields and fields[name] is not None
        }
        return cls(task_id=str(task_id), **values)

    @classmethod
    def from_dict(cls, data: dict) -> "TaskDocument":
        return cls.from_fields(data["_id"], data)

    def as_dict(self) -> dict:
        payload: dict[str, Any] = {"_id": self.task_id}
        for name, attr in TASK_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                payload[name] = value
        return payload


@dataclass
class ProjectDocument:
    project_id: str
    project_name: str
    tasks: list[TaskDocument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectDocument":
        return cls(
            project_id=str(data["projectId"]),
            project_name=data.get("projectName", ""),
            tasks=[TaskDocument.from_dict(t) for t in data.get("tasks", [])],
        )

    def summary(self) -> dict:
        return {"projectId": self.project_id, "projectName": self.project_name}

    def has_task(self, task_id: Any) -> bool:
        wanted = str(task_id)
        return any(task.task_id == wanted for task in self.tasks)

    def remove_tasks(self, task_ids: Iterable[Any]) -> int:
        """Drop every task whose id, as a string, is in `task_ids`."""
        doomed = {str(task_id) for task_id in task_ids}
        before = len(self.tasks)
        self.tasks = [task for task in self.tasks if task.task_id not in doomed]
        return before - len(self.tasks)

    def as_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "tasks": [task.as_dict() for task in self.tasks],
        }


@dataclass
class UserDocument:
    user_id: str
    projects: list[ProjectDocument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "UserDocument":
        return cls(
            user_id=str(data["userId"]),
            projects=[ProjectDocument.from_dict(p) for p in data.get("projects", [])],
        )

    def find_project(self, project_id: Any) -> Optional[ProjectDocument]:
        wanted = str(project_id)
        for project in self.projects:
            if project.project_id == wanted:
                return project
        return None

    def has_task(self, task_id: Any) -> bool:
        return any(project.has_task(task_id) for project in self.projects)

    def replace_task(self, task_id: Any, fields: dict) -> int:
        """
        Replace, in every project, each task with id `task_id` by a new task
        built from `fields` alone. Fields not given are dropped, not merged.
        """
        wanted = str(task_id)
        replaced = 0
        for project in self.projects:
            for index, task in enumerate(project.tasks):
                if task.task_id == wanted:
                    project.tasks[index] = TaskDocument.from_fields(wanted, fields)
                    replaced += 1
        return replaced

    def remove_project(self, project_id: Any) -> int:
        wanted = str(project_id)
        before = len(self.projects)
        self.projects = [p for p in self.projects if p.project_id != wanted]
        return before - len(self.projects)

    def project_summaries(self) -> list[dict]:
        return [project.summary() for project in self.projects]

    def as_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "projects": [project.as_dict() for project in self.projects],
        }
