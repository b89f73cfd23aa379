"""Offline-first task synchronization layer."""

from tasksync.application.usecases.reconcile_on_load import LoadResult, ReconcileOnLoadUseCase
from tasksync.config import SyncSettings
from tasksync.domain.errors import (
    AuthenticationError,
    ErrorKind,
    MalformedRecordError,
    NetworkError,
    RateLimitError,
    ServerError,
    SyncError,
    ValidationError,
)
from tasksync.domain.identity import is_remote_identifier, mint_local_identifier
from tasksync.domain.models import DataSource, Priority, Project, RecurringType, Task
from tasksync.infrastructure.cache.json_cache import JsonCache
from tasksync.infrastructure.remote.tasks_gateway import TasksGateway
from tasksync.infrastructure.remote.transport import RemoteTransport
from tasksync.sync_store import SyncStore

__all__ = [
    "AuthenticationError",
    "DataSource",
    "ErrorKind",
    "JsonCache",
    "LoadResult",
    "MalformedRecordError",
    "NetworkError",
    "Priority",
    "Project",
    "RateLimitError",
    "ReconcileOnLoadUseCase",
    "RecurringType",
    "RemoteTransport",
    "ServerError",
    "SyncError",
    "SyncSettings",
    "SyncStore",
    "Task",
    "TasksGateway",
    "ValidationError",
    "is_remote_identifier",
    "mint_local_identifier",
]
