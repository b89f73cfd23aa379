from __future__ import annotations

import asyncio
import uuid

import pytest

from tasksync.config import TOKEN_SLOT, USER_SLOT, SyncSettings
from tasksync.domain.errors import NetworkError
from tasksync.domain.models import Project, Task
from tasksync.infrastructure.cache.json_cache import JsonCache


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


def ok(data=None) -> FakeResponse:
    return FakeResponse(200, {"success": True, "data": data})


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0) if self.outcomes else ok()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeGateway:
    """In-process backend double for store and loader tests."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_with = None
        self.fail_for: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.remote_tasks = None
        self.remote_projects = None

    async def _call(self, name: str, entity_id: str, *args):
        self.calls.append((name, entity_id, *args))
        gate = self.gates.get(entity_id)
        if gate is not None:
            await gate.wait()
        error = self.fail_for.get(entity_id) or self.fail_with
        if error is not None:
            raise error

    async def list_tasks(self):
        self.calls.append(("list_tasks",))
        if self.remote_tasks is None:
            raise NetworkError()
        return self.remote_tasks

    async def list_projects(self):
        self.calls.append(("list_projects",))
        if self.remote_projects is None:
            raise NetworkError()
        return self.remote_projects

    async def create_task(self, task: Task) -> Task:
        await self._call("create_task", task.id)
        data = task.to_dict(include_identity=False)
        data.update(id=f"srv-{uuid.uuid4()}", createdAt="2024-01-01T00:00:00Z")
        return Task.from_dict(data)

    async def update_task(self, task_id, changes):
        await self._call("update_task", task_id, changes)

    async def delete_task(self, task_id):
        await self._call("delete_task", task_id)

    async def complete_task(self, task_id):
        await self._call("complete_task", task_id)

    async def create_project(self, project: Project) -> Project:
        await self._call("create_project", project.id)
        return Project(id=f"srv-{uuid.uuid4()}", name=project.name, color=project.color)

    async def update_project(self, project_id, changes):
        await self._call("update_project", project_id, changes)

    async def delete_project(self, project_id):
        await self._call("delete_project", project_id)

    def network_calls(self) -> list[tuple]:
        return [call for call in self.calls if not call[0].startswith("list_")]


def make_task(task_id: str, **overrides) -> Task:
    values = {"id": task_id, "title": f"Task {task_id}", "start_date": "2024-01-01"}
    values.update(overrides)
    return Task(**values)


@pytest.fixture
def cache(tmp_path) -> JsonCache:
    return JsonCache(str(tmp_path / "cache"))


@pytest.fixture
def authed_cache(cache) -> JsonCache:
    cache.save(TOKEN_SLOT, "secret-token")
    cache.save(USER_SLOT, {"id": "u1", "email": "me@example.com"})
    return cache


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(base_url="https://tasks.example.com/api")


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
