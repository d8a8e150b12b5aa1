"""
Kanban column: drop target for one status.
"""
from typing import Callable, Dict, Iterable, List, Optional

from .card import TaskCardView
from .schema import ColumnConfig, Task
from .transforms import sort_tasks_by_position


class KanbanColumnView:
    """Holds the cards of one column in position order.

    Tasks arrive already grouped by the board; the column only sorts them.
    """

    EMPTY_MESSAGE = "No tasks yet. Drag tasks here or add one."

    def __init__(
        self,
        column: ColumnConfig,
        tasks: Iterable[Task],
        cards: Optional[Dict[str, TaskCardView]] = None,
        on_create_task: Optional[Callable[[str], None]] = None,
        on_task_click: Optional[Callable[[str], None]] = None,
    ):
        self.column = column
        self.tasks: List[Task] = sort_tasks_by_position(tasks)
        self.on_create_task = on_create_task
        cards = cards or {}
        self.cards: List[TaskCardView] = [
            cards.get(t.task_id) or TaskCardView(t, on_click=on_task_click)
            for t in self.tasks
        ]

    @property
    def column_id(self) -> str:
        return self.column.column_id

    @property
    def drop_target_id(self) -> str:
        return self.column.column_id

    @property
    def task_ids(self) -> List[str]:
        return [t.task_id for t in self.tasks]

    @property
    def count(self) -> int:
        return len(self.tasks)

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    @property
    def empty_message(self) -> Optional[str]:
        return self.EMPTY_MESSAGE if self.is_empty else None

    def request_create(self) -> bool:
        """Ask the owner to open the create dialog for this column."""
        if self.on_create_task is None:
            return False
        self.on_create_task(self.column.column_id)
        return True

    def render_text(self) -> str:
        header = f"{self.column.name} ({self.count})"
        lines = [header, "─" * len(header)]
        if self.is_empty:
            lines.append(self.EMPTY_MESSAGE)
        for card in self.cards:
            lines.append(card.render_text())
        return "\n".join(lines)
