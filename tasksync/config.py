"""Defaults and injectable settings for the sync layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_BASE_URL = "http://localhost:3000/api"
REQUEST_TIMEOUT_S = 15.0
MAX_RETRIES = 3
RATE_LIMIT_BASE_DELAY_S = 1.0
NETWORK_RETRY_DELAY_S = 2.0

TASKS_SLOT = "tasks"
PROJECTS_SLOT = "projects"
TOKEN_SLOT = "token"
USER_SLOT = "user"

DEFAULT_SEED_PROJECTS = (
    {"id": "1", "name": "Personal", "color": "#3B82F6"},
    {"id": "2", "name": "Work", "color": "#EF4444"},
    {"id": "3", "name": "Health", "color": "#10B981"},
)


@dataclass(slots=True)
class SyncSettings:
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT_S
    max_retries: int = MAX_RETRIES
    rate_limit_base_delay: float = RATE_LIMIT_BASE_DELAY_S
    network_retry_delay: float = NETWORK_RETRY_DELAY_S
    seed_projects: tuple[dict, ...] = field(default=DEFAULT_SEED_PROJECTS)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        timeout_raw = os.environ.get("TASKSYNC_TIMEOUT", "")
        try:
            timeout = float(timeout_raw) if timeout_raw else REQUEST_TIMEOUT_S
        except ValueError:
            timeout = REQUEST_TIMEOUT_S
        return cls(
            base_url=os.environ.get("TASKSYNC_BASE_URL") or DEFAULT_BASE_URL,
            request_timeout=max(1.0, timeout),
        )
