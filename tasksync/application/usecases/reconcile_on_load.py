from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from tasksync.config import PROJECTS_SLOT, TASKS_SLOT, SyncSettings
from tasksync.domain.errors import MalformedRecordError, SyncError
from tasksync.domain.models import DataSource, Project, Task
from tasksync.infrastructure.cache.json_cache import JsonCache
from tasksync.infrastructure.remote.tasks_gateway import TasksGateway

if TYPE_CHECKING:
    from tasksync.sync_store import SyncStore


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class LoadResult:
    tasks: list[Task]
    projects: list[Project]
    task_source: DataSource
    project_source: DataSource
    dropped: int = 0
    error_message: str = ""
    errors: list[str] = field(default_factory=list)


def _validate(records: list, parse: Callable[[object], T], what: str) -> tuple[list[T], int]:
    valid: list[T] = []
    dropped = 0
    for record in records:
        try:
            valid.append(parse(record))
        except MalformedRecordError as exc:
            dropped += 1
            logger.warning("Dropping malformed %s record: %s", what, exc)
    return valid, dropped


class ReconcileOnLoadUseCase:
    """Establish the starting state: backend first, then cache, then defaults."""

    def __init__(self, gateway: TasksGateway, cache: JsonCache, settings: SyncSettings | None = None):
        self.gateway = gateway
        self.cache = cache
        self.settings = settings or SyncSettings()

    async def execute(self) -> LoadResult:
        errors: list[str] = []
        tasks, task_source, dropped_tasks = await self._load_tasks(errors)
        projects, project_source, dropped_projects = await self._load_projects(errors)
        return LoadResult(
            tasks=tasks,
            projects=projects,
            task_source=task_source,
            project_source=project_source,
            dropped=dropped_tasks + dropped_projects,
            error_message=errors[0] if errors else "",
            errors=errors,
        )

    async def load_into(self, store: "SyncStore") -> LoadResult:
        result = await self.execute()
        store.install(result.tasks, result.projects)
        logger.info(
            "Loaded %d tasks (%s) and %d projects (%s).",
            len(result.tasks), result.task_source.value,
            len(result.projects), result.project_source.value,
        )
        return result

    async def _load_tasks(self, errors: list[str]) -> tuple[list[Task], DataSource, int]:
        try:
            records = await self.gateway.list_tasks()
        except SyncError as exc:
            logger.error("Error loading tasks from backend (%s): %s", exc.kind.value, exc)
            errors.append(str(exc))
        else:
            tasks, dropped = _validate(records, Task.from_dict, "task")
            await self._save(TASKS_SLOT, [task.to_dict() for task in tasks])
            return tasks, DataSource.REMOTE, dropped

        cached = await self._read(TASKS_SLOT)
        if cached is None:
            logger.info("No tasks found in local cache.")
            return [], DataSource.DEFAULT, 0
        tasks, dropped = _validate(cached, Task.from_dict, "task")
        return tasks, DataSource.CACHE, dropped

    async def _load_projects(self, errors: list[str]) -> tuple[list[Project], DataSource, int]:
        try:
            records = await self.gateway.list_projects()
        except SyncError as exc:
            logger.error("Error loading projects from backend (%s): %s", exc.kind.value, exc)
            errors.append(str(exc))
        else:
            projects, dropped = _validate(records, Project.from_dict, "project")
            await self._save(PROJECTS_SLOT, [project.to_dict() for project in projects])
            return projects, DataSource.REMOTE, dropped

        cached = await self._read(PROJECTS_SLOT)
        if cached:
            projects, dropped = _validate(cached, Project.from_dict, "project")
            if projects:
                return projects, DataSource.CACHE, dropped
        logger.info("Using default projects.")
        return [Project.from_dict(dict(seed)) for seed in self.settings.seed_projects], DataSource.DEFAULT, 0

    async def _read(self, slot: str) -> list | None:
        try:
            payload = await self.cache.read(slot)
        except OSError:
            logger.exception("Error reading %s from local cache.", slot)
            return None
        if payload is None:
            return None
        if not isinstance(payload, list):
            logger.warning("Cached %s is not a list; ignoring it.", slot)
            return []
        return payload

    async def _save(self, slot: str, payload: list) -> None:
        try:
            await self.cache.write(slot, payload)
        except OSError:
            logger.exception("Error saving %s to local cache.", slot)
