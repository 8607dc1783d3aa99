import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from .utils import get_logger


class TaskRunner:
    """Runs coroutines on the current event loop and reports failures back.

    Spawned tasks are kept referenced until they finish, so work started
    from a synchronous callback is never dropped halfway.
    """

    def __init__(self) -> None:
        self.logger = get_logger("supasync.tasks")
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def run(
        self,
        work: Awaitable[Any],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._execute(work, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.logger.debug("TaskRunner start pending=%s", len(self._tasks))
        return task

    async def _execute(self, work: Awaitable[Any], on_error: Optional[Callable[[Exception], None]]) -> Any:
        try:
            return await work
        except Exception as exc:
            self.logger.debug("Task error exc=%r", exc)
            if on_error:
                on_error(exc)
            else:
                self.logger.exception("Unhandled task error")

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
