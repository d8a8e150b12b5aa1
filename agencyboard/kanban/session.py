"""
Board session: the owner that fetches a project's tasks and keeps a
KanbanBoard supplied with fresh snapshots.

Works against anything with list_tasks(project_id) and
move_task(task_id, status, position): the HTTP client or the store itself.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional, Union, Iterable

from .board import KanbanBoard
from .events import TaskChangeFeed
from .schema import ColumnConfig, ColumnTable, DEFAULT_TABLE, Task

logger = logging.getLogger(__name__)


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class BoardSession:
    """Loads tasks for one project and wires refresh/move to a service."""

    def __init__(
        self,
        service: Any,
        project_id: str,
        columns: Union[ColumnTable, Iterable[ColumnConfig], None] = None,
        notify: Optional[Callable[[str], None]] = None,
        on_task_click: Optional[Callable[[str], None]] = None,
        on_create_task: Optional[Callable[[str], None]] = None,
    ):
        self.service = service
        self.project_id = project_id
        if columns is None:
            columns = DEFAULT_TABLE
        self.table = columns if isinstance(columns, ColumnTable) else ColumnTable(columns)
        self.notify = notify
        self.on_task_click = on_task_click
        self.on_create_task = on_create_task
        self.board: Optional[KanbanBoard] = None
        self.reloads = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def fetch(self) -> List[Task]:
        """Pull the project's tasks from the service of record."""
        tasks = self.service.list_tasks(self.project_id)
        self.reloads += 1
        logger.info(f"Loaded {len(tasks)} task(s) for project {self.project_id}")
        return tasks

    def load(self) -> KanbanBoard:
        """Fetch tasks and build the board."""
        self.board = KanbanBoard(
            self.table,
            self.fetch(),
            move_task=self.service.move_task,
            on_refresh=self.fetch,
            on_error=self.notify,
            on_task_click=self.on_task_click,
            on_create_task=self.on_create_task,
        )
        return self.board

    def reload(self) -> None:
        """Replace the board's working copy with a fresh fetch."""
        if self.board is None:
            self.load()
            return
        self.board.set_tasks(self.fetch())

    def listen(
        self,
        feed: TaskChangeFeed,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> Callable[[], None]:
        """
        Reload on changes to this project.

        Updates for tasks the board is still moving optimistically are our
        own echoes and are skipped. Events published from another thread
        (store writes inside a board commit run in a worker) are handed to
        ``loop``, by default the loop running when listen() is called.
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        def on_change(event: str, task: Task, old: Optional[Task] = None) -> None:
            if self.board is not None and event == "UPDATE" and self.board.is_optimistic(task.task_id):
                return
            if loop is not None and loop.is_running() and not _on_loop(loop):
                loop.call_soon_threadsafe(self.reload)
                return
            self.reload()

        self.close()
        self._unsubscribe = feed.subscribe(on_change, project_id=self.project_id)
        return self._unsubscribe

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
