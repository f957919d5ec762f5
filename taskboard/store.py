"""
User/project store over one collection of user documents, with an in-memory
implementation for tests and a SQLAlchemy-backed one for Postgres.

Every mutation reads a whole user document, changes it in memory and saves it
back with a version check. Pushes and in-place sets (create_project, add_task,
update_task) re-apply themselves when another writer got there first, like the
atomic array operators of a document store. Deletions, which filter the whole
document, surface that race as ConcurrentModificationError instead of losing
the other update.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, TypeVar

from sqlalchemy import (
    JSON,
    Column,
    Float,
    Integer,
    String,
    cast,
    create_engine,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from taskboard.documents import ProjectDocument, TaskDocument, UserDocument
from taskboard.errors import (
    ConcurrentModificationError,
    InvalidRequestError,
    NotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SAVE_ATTEMPTS = 5


class UserProjectStore(Protocol):
    """Operations the API needs on user aggregates."""

    def provision_user(self) -> str:
        ...

    def create_project(self, user_id: str, project_name: str) -> list[dict]:
        ...

    def list_projects(self, user_id: str) -> list[dict]:
        ...

    def add_task(self, user_id: str, project_id: str, task: dict) -> Optional[str]:
        ...

    def update_task(
        self, user_id: str, project_id: str, task_id: str, updated_fields: dict
    ) -> Optional[dict]:
        ...

    def delete_tasks(self, project_id: str, task_ids: Any) -> dict:
        ...

    def list_tasks(self, project_id: str) -> list[dict]:
        ...

    def delete_project(self, user_id: str, project_id: str) -> list[dict]:
        ...

    def close(self) -> None:
        ...


class DocumentUserProjectStore:
    """
    Implements the store operations on top of four document primitives that
    concrete backends provide:

    - `_load(user_id)` -> (document, version) or None
    - `_load_by_project(project_id)` -> first owning (document, version) or None
    - `_insert(document)` -> False if the user id is already taken
    - `_save(document, version)` -> raises ConcurrentModificationError when the
      stored version is no longer `version`
    """

    def _load(self, user_id: str) -> Optional[tuple[UserDocument, int]]:
        raise NotImplementedError

    def _load_by_project(self, project_id: str) -> Optional[tuple[UserDocument, int]]:
        raise NotImplementedError

    def _insert(self, user: UserDocument) -> bool:
        raise NotImplementedError

    def _save(self, user: UserDocument, version: int) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def provision_user(self) -> str:
        user_id = str(uuid.uuid4())
        if self._load(user_id) is not None:
            logger.warning("Generated user id %s already exists; reusing it", user_id)
            return user_id
        if not self._insert(UserDocument(user_id=user_id)):
            logger.warning("User %s was created concurrently; reusing it", user_id)
        else:
            logger.info("Provisioned user %s", user_id)
        return user_id

    def _retrying(self, user_id: str, attempt: Callable[[], T]) -> T:
        """
        Run `attempt` until its save goes through. Used by the operations that
        only push or set inside one document, so a concurrent writer to the
        same user is re-applied on top of instead of rejected.
        """
        for _ in range(MAX_SAVE_ATTEMPTS - 1):
            try:
                return attempt()
            except ConcurrentModificationError:
                logger.info("User %s changed during update; re-applying", user_id)
        return attempt()

    def create_project(self, user_id: str, project_name: str) -> list[dict]:
        project = ProjectDocument(project_id=str(uuid.uuid4()), project_name=project_name)

        def attempt() -> list[dict]:
            loaded = self._load(user_id)
            if loaded is None:
                user = UserDocument(user_id=str(user_id), projects=[project])
                if not self._insert(user):
                    raise ConcurrentModificationError(str(user_id))
                logger.info(
                    "Created user %s with project %s", user_id, project.project_id
                )
                return user.project_summaries()

            user, version = loaded
            user.projects.append(project)
            self._save(user, version)
            logger.info("Created project %s for user %s", project.project_id, user_id)
            return user.project_summaries()

        return self._retrying(user_id, attempt)

    def list_projects(self, user_id: str) -> list[dict]:
        loaded = self._load(user_id)
        if loaded is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        user, _ = loaded
        return user.project_summaries()

    def add_task(self, user_id: str, project_id: str, task: dict) -> Optional[str]:
        """
        Append `task` to the project and return the id assigned to it. A user
        or project that does not match is a no-op returning None.
        """
        new_task = TaskDocument.from_fields(uuid.uuid4().hex, task)
        if new_task.task_completed is None:
            new_task.task_completed = False

        def attempt() -> Optional[str]:
            loaded = self._load(user_id)
            project = loaded[0].find_project(project_id) if loaded else None
            if project is None:
                logger.warning(
                    "No project %s for user %s; task not added", project_id, user_id
                )
                return None

            user, version = loaded
            project.tasks.append(new_task)
            self._save(user, version)
            return new_task.task_id

        return self._retrying(user_id, attempt)

    def update_task(
        self, user_id: str, project_id: str, task_id: str, updated_fields: dict
    ) -> Optional[dict]:
        """
        Replace the task wholesale with `{_id: task_id, **updated_fields}`.

        The user must own `project_id`, but the task is matched by id across
        all of the user's projects, and every match is replaced.
        """
        if not isinstance(updated_fields, dict):
            raise InvalidRequestError("updatedFields must be an object")

        def attempt() -> Optional[dict]:
            loaded = self._load(user_id)
            if loaded is None:
                return None
            user, version = loaded
            if user.find_project(project_id) is None or not user.has_task(task_id):
                return None

            user.replace_task(task_id, updated_fields)
            self._save(user, version)
            return user.as_dict()

        return self._retrying(user_id, attempt)

    def delete_tasks(self, project_id: str, task_ids: Any) -> dict:
        if not isinstance(task_ids, list) or not task_ids:
            raise InvalidRequestError("Invalid request data")
        loaded = self._load_by_project(project_id)
        if loaded is None:
            raise NotFoundError("Project not found", {"project_id": project_id})

        user, version = loaded
        project = user.find_project(project_id)
        removed = project.remove_tasks(task_ids)
        self._save(user, version)
        logger.info("Deleted %d task(s) from project %s", removed, project_id)
        return project.as_dict()

    def list_tasks(self, project_id: str) -> list[dict]:
        loaded = self._load_by_project(project_id)
        if loaded is None:
            raise NotFoundError("Project not found", {"project_id": project_id})
        project = loaded[0].find_project(project_id)
        return [task.as_dict() for task in project.tasks]

    def delete_project(self, user_id: str, project_id: str) -> list[dict]:
        loaded = self._load(user_id)
        if loaded is None:
            raise NotFoundError("User not found", {"user_id": user_id})

        user, version = loaded
        if user.remove_project(project_id):
            logger.info("Deleted project %s of user %s", project_id, user_id)
        self._save(user, version)
        return user.project_summaries()


class InMemoryUserProjectStore(DocumentUserProjectStore):
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.versions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _load(self, user_id: str) -> Optional[tuple[UserDocument, int]]:
        with self._lock:
            data = self.users.get(str(user_id))
            if data is None:
                return None
            return UserDocument.from_dict(data), self.versions[str(user_id)]

    def _load_by_project(self, project_id: str) -> Optional[tuple[UserDocument, int]]:
        with self._lock:
            for user_id, data in self.users.items():
                user = UserDocument.from_dict(data)
                if user.find_project(project_id) is not None:
                    return user, self.versions[user_id]
        return None

    def _insert(self, user: UserDocument) -> bool:
        with self._lock:
            if user.user_id in self.users:
                return False
            self.users[user.user_id] = user.as_dict()
            self.versions[user.user_id] = 0
            return True

    def _save(self, user: UserDocument, version: int) -> None:
        with self._lock:
            if self.versions.get(user.user_id) != version:
                raise ConcurrentModificationError(user.user_id)
            self.users[user.user_id] = user.as_dict()
            self.versions[user.user_id] = version + 1


class SqlUserProjectStore(DocumentUserProjectStore):
    """
    SQLAlchemy-backed implementation storing each user's projects as a JSON
    document. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlUserProjectStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("User store %s failed", operation)
            raise StorageError(operation, str(exc)) from exc

    @staticmethod
    def _to_document(row: "UserRow") -> tuple[UserDocument, int]:
        user = UserDocument.from_dict({"userId": row.user_id, "projects": row.projects})
        return user, row.version

    def _load(self, user_id: str) -> Optional[tuple[UserDocument, int]]:
        with self._session("load") as session:
            row = session.get(UserRow, str(user_id))
            if not row:
                return None
            return self._to_document(row)

    def _load_by_project(self, project_id: str) -> Optional[tuple[UserDocument, int]]:
        # The quoted id must occur in the stored JSON text; rows that pass are
        # confirmed by parsing, streamed in insertion order.
        needle = json.dumps(str(project_id))
        with self._session("load_by_project") as session:
            stmt = (
                select(UserRow)
                .where(cast(UserRow.projects, String).contains(needle, autoescape=True))
                .order_by(UserRow.created_at.asc(), UserRow.user_id.asc())
                .execution_options(yield_per=100)
            )
            for row in session.execute(stmt).scalars():
                user, version = self._to_document(row)
                if user.find_project(project_id) is not None:
                    return user, version
        return None

    def _insert(self, user: UserDocument) -> bool:
        with self._session("insert") as session:
            session.add(
                UserRow(
                    user_id=user.user_id,
                    projects=user.as_dict()["projects"],
                    version=0,
                    created_at=time.time(),
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
        return True

    def _save(self, user: UserDocument, version: int) -> None:
        with self._session("save") as session:
            result = session.execute(
                update(UserRow)
                .where(UserRow.user_id == user.user_id, UserRow.version == version)
                .values(projects=user.as_dict()["projects"], version=version + 1)
            )
            if result.rowcount != 1:
                session.rollback()
                raise ConcurrentModificationError(user.user_id)
            session.commit()

    def close(self) -> None:
        self.engine.dispose()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    projects = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)
