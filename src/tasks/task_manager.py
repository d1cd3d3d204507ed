"""Task manager enforcing one running task per target name."""

import asyncio
import logging
from typing import Callable, Dict, Optional

from src.switches.errors import ErrorCollector
from src.tasks.base import Task
from src.tasks.errors import TaskManagerError


logger = logging.getLogger(__name__)

EventHook = Callable[[str, str], None]

OFF_EVENT = 'off'


class TaskManager:
    """
    Owns the mapping from target name to active task.

    Starting a task for a name that already has one first stops the old task
    completely (including its final turn-off). Lifecycle events are passed to
    an optional publish hook as (target_name, event_name).
    """

    def __init__(self, publish: Optional[EventHook] = None):
        """
        Initialize task manager.

        Args:
            publish: Callable invoked with (target_name, event_name)
        """
        self._tasks: Dict[str, Task] = {}
        self._lock = asyncio.Lock()
        self._publish = publish

    def _emit(self, name: str, event: str):
        if self._publish is not None:
            self._publish(name, event)

    async def start_task(self, name: str, task: Task):
        """
        Replace whatever runs on `name` with `task`.

        Args:
            name: Target (switch or group) name
            task: Task to start

        Raises:
            TaskManagerError: If the previous task failed to stop
            TaskError: If the new task failed to start
        """
        async with self._lock:
            await self._stop_task_locked(name)
            await task.start()
            self._tasks[name] = task
            logger.info(f"Start {task.task_type.value} on {name}")
            self._emit(name, task.task_type.value)

    async def stop_task(self, name: str) -> bool:
        """
        Stop and forget the task for `name`; a missing task is not an error.

        Returns:
            True if a running task was stopped and "off" published

        Raises:
            TaskManagerError: If the task failed to stop
        """
        async with self._lock:
            return await self._stop_task_locked(name)

    async def _stop_task_locked(self, name: str) -> bool:
        # The entry is removed even if stop() fails; the task is not running afterwards.
        task = self._tasks.pop(name, None)
        if task is None or not task.is_running():
            return False

        logger.info(f"Cancelling {task.task_type.value} on {name}")
        try:
            await task.stop()
        except Exception as e:
            raise TaskManagerError(f"failed to cancel {task.task_type.value} on {name}: {e}") from e
        self._emit(name, OFF_EVENT)
        return True

    def get_task(self, name: str) -> Optional[Task]:
        return self._tasks.get(name)

    def list_tasks(self) -> Dict[str, Task]:
        return dict(self._tasks)

    async def stop_all_tasks(self):
        """
        Stop every tracked task, attempting all of them.

        Raises:
            AggregateError: Naming every task that failed to stop
        """
        async with self._lock:
            collector = ErrorCollector()
            for name in list(self._tasks):
                try:
                    await self._stop_task_locked(name)
                except Exception as e:
                    logger.error(f"Failed to stop task {name}: {e}")
                    collector.add(f"task {name}", e)
            collector.raise_if_errors("errors stopping tasks")
