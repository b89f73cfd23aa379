from __future__ import annotations

from tasksync.domain.errors import MalformedRecordError
from tasksync.domain.models import Project, Task, changes_to_wire
from tasksync.infrastructure.remote.transport import RemoteTransport


class TasksGateway:
    """Task and project endpoints of the backend. Errors propagate as SyncError."""

    def __init__(self, transport: RemoteTransport):
        self.transport = transport

    async def list_tasks(self) -> list:
        return self._as_list(await self.transport.request("GET", "/tasks"), "tasks")

    async def create_task(self, task: Task) -> Task:
        created = await self.transport.request("POST", "/tasks", json=task.to_dict(include_identity=False))
        return Task.from_dict(created)

    async def update_task(self, task_id: str, changes: dict) -> None:
        await self.transport.request("PUT", f"/tasks/{task_id}", json=changes_to_wire(changes))

    async def delete_task(self, task_id: str) -> None:
        await self.transport.request("DELETE", f"/tasks/{task_id}")

    async def complete_task(self, task_id: str) -> None:
        await self.transport.request("POST", f"/tasks/{task_id}/complete", json={})

    async def list_projects(self) -> list:
        return self._as_list(await self.transport.request("GET", "/projects"), "projects")

    async def create_project(self, project: Project) -> Project:
        created = await self.transport.request("POST", "/projects", json=project.to_dict(include_identity=False))
        return Project.from_dict(created)

    async def update_project(self, project_id: str, changes: dict) -> None:
        await self.transport.request("PUT", f"/projects/{project_id}", json=dict(changes))

    async def delete_project(self, project_id: str) -> None:
        await self.transport.request("DELETE", f"/projects/{project_id}")

    @staticmethod
    def _as_list(data: object, what: str) -> list:
        if not isinstance(data, list):
            raise MalformedRecordError(f"Expected a list of {what}.")
        return data
