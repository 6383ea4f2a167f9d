import asyncio
import logging

logger = logging.getLogger("room_tasks")


class ConnectionTaskGroup:
    """Background tasks that live exactly as long as one room connection."""

    def __init__(self):
        self.stop_event = asyncio.Event()
        self.tasks: list[asyncio.Task] = []
        self.stop_reason = "other"

    def create_task(self, coro):
        task = asyncio.create_task(coro)
        self.tasks.append(task)
        task.add_done_callback(self._log_failure)
        return task

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Room task failed | task=%s err=%s", task.get_name(), exc)

    def request_stop(self, reason: str) -> None:
        if not self.stop_event.is_set():
            self.stop_reason = reason
            self.stop_event.set()

    async def stop(self):
        if not self.stop_event.is_set():
            self.stop_event.set()

        current = asyncio.current_task()
        pending = [task for task in self.tasks if task is not current]
        for task in pending:
            task.cancel()

        await asyncio.gather(*pending, return_exceptions=True)
