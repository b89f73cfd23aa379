"""In-memory task/project state with optimistic remote sync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import fields, replace
from datetime import datetime

from PyQt6.QtCore import QObject, pyqtSignal

from tasksync.application import views
from tasksync.config import PROJECTS_SLOT, TASKS_SLOT, SyncSettings
from tasksync.domain.errors import ErrorKind, SyncError, ValidationError
from tasksync.domain.identity import is_remote_identifier, mint_local_identifier
from tasksync.domain.models import PROJECT_MUTABLE_FIELDS, Priority, Project, Task
from tasksync.infrastructure.cache.json_cache import JsonCache
from tasksync.infrastructure.remote.tasks_gateway import TasksGateway


logger = logging.getLogger(__name__)

_IDENTITY_FIELDS = frozenset({"id", "created_at", "task_count"})


def _changed_fields(before, after) -> dict[str, tuple]:
    """Map field name -> (old, new) for every field that differs."""
    return {
        f.name: (getattr(before, f.name), getattr(after, f.name))
        for f in fields(before)
        if getattr(before, f.name) != getattr(after, f.name)
    }


def _index_of(collection: list, entity_id: str) -> int:
    for index, item in enumerate(collection):
        if item.id == entity_id:
            return index
    return -1


class SyncStore(QObject):
    """Owns the task and project collections for the lifetime of the process.

    Every mutation changes memory first and then awaits the backend. Entities
    with a locally minted id never reach the backend. A failed remote call
    restores only the fields that mutation wrote, and only where nothing else
    has overwritten them since. Remote calls for one entity run one at a time.
    """

    tasks_changed = pyqtSignal()
    projects_changed = pyqtSignal()
    offline_mode = pyqtSignal()
    sync_error = pyqtSignal(str)

    def __init__(self, gateway: TasksGateway, cache: JsonCache, settings: SyncSettings | None = None):
        super().__init__()
        self.gateway = gateway
        self.cache = cache
        self.settings = settings or SyncSettings()
        self._tasks: list[Task] = []
        self._projects: list[Project] = []
        self._ready = asyncio.Event()
        self._aliases: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self._pending_writes: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State access

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def projects(self) -> tuple[Project, ...]:
        return tuple(self._projects)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def install(self, tasks: list[Task], projects: list[Project]) -> None:
        """Replace both collections; mutations are accepted from here on."""
        self._tasks = list(tasks)
        self._projects = list(projects)
        self._aliases.clear()
        self._recount_projects()
        self._ready.set()
        self.tasks_changed.emit()
        self.projects_changed.emit()

    def get_task(self, task_id: str) -> Task | None:
        index = _index_of(self._tasks, self._resolve(task_id))
        return self._tasks[index] if index >= 0 else None

    def get_project(self, project_id: str) -> Project | None:
        index = _index_of(self._projects, self._resolve(project_id))
        return self._projects[index] if index >= 0 else None

    def tasks_by_project(self, project_id: str) -> list[Task]:
        return views.by_project(self._tasks, self._resolve(project_id))

    def tasks_by_category(self, category: str) -> list[Task]:
        return views.by_category(self._tasks, category)

    def tasks_by_priority(self, priority: Priority | str) -> list[Task]:
        return views.by_priority(self._tasks, priority)

    def search_tasks(self, query: str) -> list[Task]:
        return views.search(self._tasks, query)

    def statistics(self, now: datetime | None = None) -> views.TaskStatistics:
        return views.statistics(self._tasks, now)

    # ------------------------------------------------------------------
    # Task mutations

    async def create_task(self, task_fields: dict) -> Task:
        """Add a task. Remote failures leave it as a local-only task.

        Raises:
            ValidationError: missing title or start date, or an invalid field.
        """
        await self._ready.wait()
        local = Task.new(mint_local_identifier(), task_fields)
        self._tasks.append(local)
        self._tasks_updated()

        async with self._lock_for(local.id):
            try:
                created = await self.gateway.create_task(local)
            except SyncError as exc:
                self._note_offline(exc)
                logger.warning("Error creating task on backend (%s); kept locally as %s.", exc.kind.value, local.id)
                return self.get_task(local.id) or local

            self._link(local.id, created.id)
            index = _index_of(self._tasks, local.id)
            if index < 0:
                logger.warning("Task %s was removed before the backend confirmed it.", local.id)
                return created
            merged = self._keep_local_edits(created, local, self._tasks[index])
            self._tasks[index] = merged
            self._tasks_updated()
            logger.info("Task %s created on backend as %s.", local.id, created.id)
            return merged

    async def update_task(self, task_id: str, changes: dict) -> Task | None:
        """Apply `changes` at once; revert them if the backend rejects the update.

        Raises:
            ValidationError: unknown/immutable field or invalid value.
        """
        await self._ready.wait()
        target_id = self._resolve(task_id)
        index = _index_of(self._tasks, target_id)
        if index < 0:
            logger.warning("update_task: unknown task %s", task_id)
            return None
        current = self._tasks[index]
        updated = current.with_changes(changes)
        touched = _changed_fields(current, updated)
        if not touched:
            return current
        self._tasks[index] = updated
        self._tasks_updated()

        payload = {name: new for name, (_old, new) in touched.items()}
        ok = await self._push(target_id, "update", lambda rid: self.gateway.update_task(rid, payload))
        if not ok and self._revert(self._tasks, target_id, touched):
            self._tasks_updated()
        return self.get_task(target_id)

    async def delete_task(self, task_id: str) -> bool:
        await self._ready.wait()
        target_id = self._resolve(task_id)
        index = _index_of(self._tasks, target_id)
        if index < 0:
            logger.warning("delete_task: unknown task %s", task_id)
            return False
        removed = self._tasks.pop(index)
        self._tasks_updated()

        if await self._push(target_id, "delete", self.gateway.delete_task):
            self._forget(target_id)
            return True
        restored = replace(removed, id=self._resolve(removed.id))
        if _index_of(self._tasks, restored.id) < 0:
            self._tasks.insert(min(index, len(self._tasks)), restored)
            self._tasks_updated()
        return False

    async def toggle_complete(self, task_id: str) -> Task | None:
        await self._ready.wait()
        target_id = self._resolve(task_id)
        index = _index_of(self._tasks, target_id)
        if index < 0:
            logger.warning("toggle_complete: unknown task %s", task_id)
            return None
        current = self._tasks[index]
        updated = current.with_changes({"is_completed": not current.is_completed})
        touched = _changed_fields(current, updated)
        self._tasks[index] = updated
        self._tasks_updated()

        ok = await self._push(target_id, "completion toggle", self.gateway.complete_task)
        if not ok and self._revert(self._tasks, target_id, touched):
            self._tasks_updated()
        return self.get_task(target_id)

    # ------------------------------------------------------------------
    # Project mutations

    async def create_project(self, project_fields: dict) -> Project:
        await self._ready.wait()
        values = self._validate_project_changes(project_fields)
        if "name" not in values:
            raise ValidationError("Project name is required.")
        local = Project(id=mint_local_identifier(), name=values["name"], color=values.get("color", ""))
        self._projects.append(local)
        self._projects_updated()

        async with self._lock_for(local.id):
            try:
                created = await self.gateway.create_project(local)
            except SyncError as exc:
                self._note_offline(exc)
                logger.warning("Error creating project on backend (%s); kept locally as %s.", exc.kind.value, local.id)
                return self.get_project(local.id) or local

            self._link(local.id, created.id)
            index = _index_of(self._projects, local.id)
            if index < 0:
                logger.warning("Project %s was removed before the backend confirmed it.", local.id)
                return created
            merged = self._keep_local_edits(created, local, self._projects[index])
            self._projects[index] = merged
            # tasks filed under the local id follow the project to its server id
            moved = False
            for task_index, task in enumerate(self._tasks):
                if task.project_id == local.id:
                    self._tasks[task_index] = replace(task, project_id=created.id)
                    moved = True
            if moved:
                self.tasks_changed.emit()
            self._projects_updated()
            return merged

    async def update_project(self, project_id: str, changes: dict) -> Project | None:
        await self._ready.wait()
        values = self._validate_project_changes(changes)
        target_id = self._resolve(project_id)
        index = _index_of(self._projects, target_id)
        if index < 0:
            logger.warning("update_project: unknown project %s", project_id)
            return None
        current = self._projects[index]
        updated = replace(current, **values)
        touched = _changed_fields(current, updated)
        if not touched:
            return current
        self._projects[index] = updated
        self._projects_updated()

        payload = {name: new for name, (_old, new) in touched.items()}
        ok = await self._push(target_id, "update", lambda rid: self.gateway.update_project(rid, payload))
        if not ok and self._revert(self._projects, target_id, touched):
            self._projects_updated()
        return self.get_project(target_id)

    async def delete_project(self, project_id: str) -> bool:
        """Remove a project and detach its tasks (restored together on failure)."""
        await self._ready.wait()
        target_id = self._resolve(project_id)
        index = _index_of(self._projects, target_id)
        if index < 0:
            logger.warning("delete_project: unknown project %s", project_id)
            return False
        removed = self._projects.pop(index)
        detached = [task.id for task in self._tasks if task.project_id == target_id]
        self._tasks = [
            replace(task, project_id=None) if task.project_id == target_id else task
            for task in self._tasks
        ]
        self._collections_updated()

        if await self._push(target_id, "delete", self.gateway.delete_project):
            self._forget(target_id)
            return True
        restored_id = self._resolve(removed.id)
        if _index_of(self._projects, restored_id) < 0:
            self._projects.insert(min(index, len(self._projects)), replace(removed, id=restored_id))
        for task_id in detached:
            self._revert(self._tasks, task_id, {"project_id": (restored_id, None)})
        self._collections_updated()
        return False

    # ------------------------------------------------------------------
    # Persistence

    async def flush(self) -> None:
        """Wait for every scheduled cache write to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def _schedule_write(self) -> None:
        write = asyncio.get_running_loop().create_task(self._write_cache())
        self._pending_writes.add(write)
        write.add_done_callback(self._pending_writes.discard)

    async def _write_cache(self) -> None:
        # Serialized, and each write takes the state current at write time,
        # so the last write to land always carries the newest collections.
        async with self._write_lock:
            try:
                await self.cache.write(TASKS_SLOT, [task.to_dict() for task in self._tasks])
                await self.cache.write(PROJECTS_SLOT, [project.to_dict() for project in self._projects])
            except (OSError, TypeError, ValueError):
                logger.exception("Error saving tasks to local cache.")

    # ------------------------------------------------------------------
    # Internals

    def _resolve(self, entity_id: str) -> str:
        return self._aliases.get(entity_id, entity_id)

    def _lock_for(self, entity_id: str) -> asyncio.Lock:
        return self._locks.setdefault(self._resolve(entity_id), asyncio.Lock())

    def _link(self, local_id: str, remote_id: str) -> None:
        self._aliases[local_id] = remote_id
        self._locks[remote_id] = self._locks.setdefault(local_id, asyncio.Lock())

    def _forget(self, entity_id: str) -> None:
        """Drop the lock and aliases of an entity whose delete went through."""
        remote_id = self._resolve(entity_id)
        self._locks.pop(remote_id, None)
        for local_id in [alias for alias, target in self._aliases.items() if target == remote_id]:
            del self._aliases[local_id]
            self._locks.pop(local_id, None)

    async def _push(self, entity_id: str, action: str, call: Callable[[str], Awaitable[object]]) -> bool:
        """Send `call(remote_id)` if the entity is known to the backend.

        Returns False only when the backend call failed.
        """
        async with self._lock_for(entity_id):
            remote_id = self._resolve(entity_id)
            if not is_remote_identifier(remote_id):
                logger.info("%s of %s applied locally (offline id).", action.capitalize(), remote_id)
                return True
            try:
                await call(remote_id)
            except SyncError as exc:
                logger.error("Error during %s of %s (%s), reverting: %s", action, remote_id, exc.kind.value, exc)
                self.sync_error.emit(str(exc))
                return False
        return True

    def _revert(self, collection: list, entity_id: str, touched: dict[str, tuple]) -> bool:
        index = _index_of(collection, self._resolve(entity_id))
        if index < 0:
            return False
        current = collection[index]
        restore = {
            name: old
            for name, (old, new) in touched.items()
            if getattr(current, name) == new
        }
        if not restore:
            return False
        collection[index] = replace(current, **restore)
        return True

    @staticmethod
    def _keep_local_edits(created, submitted, current):
        """Server record, plus any field edited locally while the create was in flight."""
        edits = {
            name: new
            for name, (_old, new) in _changed_fields(submitted, current).items()
            if name not in _IDENTITY_FIELDS
        }
        return replace(created, **edits) if edits else created

    def _note_offline(self, exc: SyncError) -> None:
        if exc.kind is ErrorKind.NETWORK:
            self.offline_mode.emit()

    @staticmethod
    def _validate_project_changes(changes: dict) -> dict:
        values = {}
        for name, value in changes.items():
            if name not in PROJECT_MUTABLE_FIELDS:
                raise ValidationError(f"Project field '{name}' cannot be changed.")
            if not isinstance(value, str):
                raise ValidationError(f"Project field '{name}' must be a string.")
            values[name] = value
        if "name" in values and not values["name"].strip():
            raise ValidationError("Project name is required.")
        return values

    def _recount_projects(self) -> bool:
        counts = views.project_task_counts(self._tasks)
        changed = False
        for index, project in enumerate(self._projects):
            count = counts.get(project.id, 0)
            if project.task_count != count:
                self._projects[index] = replace(project, task_count=count)
                changed = True
        return changed

    def _tasks_updated(self) -> None:
        projects_changed = self._recount_projects()
        self.tasks_changed.emit()
        if projects_changed:
            self.projects_changed.emit()
        self._schedule_write()

    def _projects_updated(self) -> None:
        self._recount_projects()
        self.projects_changed.emit()
        self._schedule_write()

    def _collections_updated(self) -> None:
        self._recount_projects()
        self.tasks_changed.emit()
        self.projects_changed.emit()
        self._schedule_write()
