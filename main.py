"""
tasksync entry point
Loads tasks (backend, then local cache) and prints a summary.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from tasksync import JsonCache, ReconcileOnLoadUseCase, RemoteTransport, SyncSettings, SyncStore, TasksGateway
from tasksync.utils import get_base_path


def setup_logging() -> None:
    log_dir = os.path.join(get_base_path(), "data")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "app.log")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )


async def run() -> None:
    settings = SyncSettings.from_env()
    cache = JsonCache()
    gateway = TasksGateway(RemoteTransport(cache, settings))
    store = SyncStore(gateway, cache, settings)

    result = await ReconcileOnLoadUseCase(gateway, cache, settings).load_into(store)
    stats = store.statistics()
    print(f"Tasks loaded from {result.task_source.value}: {stats.total} "
          f"({stats.pending} pending, {stats.completed} completed, {stats.overdue} overdue)")
    for project in store.projects:
        print(f"  {project.name}: {project.task_count} open")


def main() -> None:
    setup_logging()
    asyncio.run(run())


if __name__ == "__main__":
    main()
