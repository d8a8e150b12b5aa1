"""
Kanban board: drag lifecycle and the optimistic move protocol.

Per drag gesture:
  IDLE → DRAGGING         drag_start(): remember the active task (overlay only)
  DRAGGING → IDLE         drag_end() without a usable drop target
  DRAGGING → RECONCILING  drag_end() with a target: local copy updated at once
  RECONCILING → IDLE      commit(): server accepted, or failed and refreshed

The board owns the working copy of the tasks. The service of record is only
reached through the move_task and on_refresh callables. Coroutine functions
are awaited; plain callables run off the event loop with asyncio.to_thread.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from .card import TaskCardView
from .column import KanbanColumnView
from .schema import ColumnConfig, ColumnTable, Task, TaskStatus
from .transforms import (
    PositionSpaceExhausted,
    calculate_new_position,
    group_tasks_by_column,
    reseed_positions,
)

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_CHARS = 100
GENERIC_MOVE_ERROR = "Failed to move task - check logs for details"

MoveTaskFn = Callable[[str, TaskStatus, float], Any]
RefreshFn = Callable[[], Optional[Iterable[Task]]]


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    """Await coroutine functions directly; run plain callables in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


class BoardPhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RECONCILING = "reconciling"


class MoveRejected(Exception):
    """The move callable reported failure without raising."""
    pass


@dataclass(frozen=True)
class MoveUpdate:
    """One (status, position) write to send to the service."""
    task_id: str
    status: TaskStatus
    position: float


@dataclass
class PendingMove:
    """A move already applied locally and awaiting the service."""
    task_id: str
    from_column_id: Optional[str]
    to_column_id: str
    updates: List[MoveUpdate]  # moved task first
    reseeded: bool = False

    @property
    def status(self) -> TaskStatus:
        return self.updates[0].status

    @property
    def position(self) -> float:
        return self.updates[0].position

    @property
    def task_ids(self) -> List[str]:
        return [u.task_id for u in self.updates]


class KanbanBoard:
    """Headless board: feed it drag events, it keeps tasks and service in step."""

    def __init__(
        self,
        columns: Union[ColumnTable, Iterable[ColumnConfig]],
        tasks: Iterable[Task],
        move_task: MoveTaskFn,
        on_refresh: Optional[RefreshFn] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_task_click: Optional[Callable[[str], None]] = None,
        on_create_task: Optional[Callable[[str], None]] = None,
    ):
        self.table = columns if isinstance(columns, ColumnTable) else ColumnTable(columns)
        self._move_task = move_task
        self._on_refresh = on_refresh
        self._on_error = on_error
        self._on_task_click = on_task_click
        self._on_create_task = on_create_task

        self._tasks: Dict[str, Task] = {}
        self._cards: Dict[str, TaskCardView] = {}
        self._optimistic: Set[str] = set()
        self._in_flight = 0

        self.active_task: Optional[Task] = None  # drag overlay source
        self.unplaced_tasks: List[Task] = []
        self.stale = False

        self.set_tasks(tasks)

    # ── Working copy ─────────────────────────────────────────────────────────

    def set_tasks(self, tasks: Iterable[Task]) -> None:
        """Replace the working copy with a fresh snapshot from the owner."""
        fresh = {t.task_id: t for t in tasks}
        cards: Dict[str, TaskCardView] = {}
        for task_id, task in fresh.items():
            card = self._cards.get(task_id)
            if card is None:
                card = TaskCardView(task, on_click=self._open_task)
            else:
                card.task = task
            cards[task_id] = card

        self._tasks = fresh
        self._cards = cards
        self._optimistic.clear()
        self.stale = False
        if self.active_task is not None and self.active_task.task_id not in fresh:
            self.active_task = None

        self.unplaced_tasks = []
        group_tasks_by_column(self._tasks.values(), self.table, unplaced=self.unplaced_tasks)
        if self.unplaced_tasks:
            logger.warning(f"{len(self.unplaced_tasks)} task(s) have a status with no column")

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def is_optimistic(self, task_id: str) -> bool:
        """True while a local move of this task awaits the service."""
        return task_id in self._optimistic

    @property
    def phase(self) -> BoardPhase:
        if self.active_task is not None:
            return BoardPhase.DRAGGING
        if self._in_flight:
            return BoardPhase.RECONCILING
        return BoardPhase.IDLE

    @property
    def is_empty(self) -> bool:
        """No columns configured; the UI offers a refresh instead."""
        return len(self.table) == 0

    def columns(self) -> List[KanbanColumnView]:
        grouped = group_tasks_by_column(self._tasks.values(), self.table)
        return [
            KanbanColumnView(
                col,
                grouped[col.column_id],
                cards=self._cards,
                on_create_task=self.create_task_in,
                on_task_click=self._open_task,
            )
            for col in self.table
        ]

    def render_text(self) -> str:
        if self.is_empty:
            return "No columns found. Refresh to load the board."
        return "\n\n".join(col.render_text() for col in self.columns())

    # ── Drag lifecycle ───────────────────────────────────────────────────────

    def drag_start(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            logger.debug(f"drag_start for unknown task {task_id}")
            return
        self._clear_active()
        self.active_task = task
        self._cards[task_id].drag_started()

    def drag_cancel(self) -> None:
        self._clear_active()

    def drag_end(self, active_id: str, over_id: Optional[str]) -> Optional[PendingMove]:
        """
        Resolve a drop and apply it to the working copy.

        Returns the PendingMove to hand to commit(), or None when the drop
        changes nothing. No network call happens here.
        """
        self._clear_active()
        card = self._cards.get(active_id)
        if card is not None and card.is_dragging:
            card.drag_ended()

        if over_id is None or over_id == active_id:
            return None

        task = self._tasks.get(active_id)
        if task is None:
            logger.warning(f"Dropped unknown task {active_id}")
            return None

        over_task: Optional[Task] = None
        if over_id in self.table:
            target_column_id = over_id
        else:
            over_task = self._tasks.get(over_id)
            if over_task is None:
                return None
            target_column_id = self.table.status_to_column_id(over_task.status)
            if target_column_id is None:
                return None

        current_column_id = self.table.status_to_column_id(task.status)
        if current_column_id == target_column_id and over_task is None:
            return None

        new_status = self.table.column_id_to_status(target_column_id)
        grouped = group_tasks_by_column(self._tasks.values(), self.table)
        siblings = [t for t in grouped[target_column_id] if t.task_id != active_id]
        before_id = over_task.task_id if over_task else None

        reseeded = False
        try:
            position = calculate_new_position(siblings, before_id)
            updates = [MoveUpdate(active_id, new_status, position)]
        except PositionSpaceExhausted as exc:
            logger.info(f"Reseeding column {target_column_id}: {exc}")
            reseeded = True
            updates = [
                MoveUpdate(tid, new_status, pos)
                for tid, pos in reseed_positions(siblings, active_id, before_id)
                if tid == active_id or self._tasks[tid].position != pos
            ]
            updates.sort(key=lambda u: u.task_id != active_id)

        self._apply(updates)
        self._in_flight += 1
        return PendingMove(
            task_id=active_id,
            from_column_id=current_column_id,
            to_column_id=target_column_id,
            updates=updates,
            reseeded=reseeded,
        )

    async def commit(self, pending: PendingMove) -> bool:
        """Send a locally applied move to the service; refresh on any failure."""
        try:
            for update in pending.updates:
                result = await _call(self._move_task, update.task_id, update.status, update.position)
                if result is False:
                    raise MoveRejected(f"Move of task {update.task_id} was rejected")
        except Exception as exc:
            logger.error(
                f"Move failed: task={pending.task_id} to={pending.to_column_id} "
                f"status={pending.status.value} position={pending.position} "
                f"updates={len(pending.updates)}: {exc!r}"
            )
            self._report_error(exc)
            self._optimistic.difference_update(pending.task_ids)
            self.stale = True
            await self.refresh()
            return False
        finally:
            self._in_flight -= 1

        self._optimistic.difference_update(pending.task_ids)
        logger.debug(f"Task {pending.task_id} moved to {pending.to_column_id} @ {pending.position}")
        return True

    async def handle_drag_end(self, active_id: str, over_id: Optional[str]) -> Optional[bool]:
        """drag_end() then commit(); None when the drop was a no-op."""
        pending = self.drag_end(active_id, over_id)
        if pending is None:
            return None
        return await self.commit(pending)

    async def refresh(self) -> bool:
        """Ask the owner for ground truth and adopt it when handed back."""
        if self._on_refresh is None:
            logger.warning("Board has no refresh handler; working copy left stale")
            self.stale = True
            return False
        try:
            fresh = await _call(self._on_refresh)
        except Exception as exc:
            logger.exception(f"Board refresh failed: {exc}")
            self.stale = True
            return False
        if fresh is not None:
            self.set_tasks(fresh)
        return True

    # ── Delegation ───────────────────────────────────────────────────────────

    def click_task(self, task_id: str) -> bool:
        card = self._cards.get(task_id)
        return card.click() if card else False

    def create_task_in(self, column_id: str) -> bool:
        if column_id not in self.table or self._on_create_task is None:
            return False
        self._on_create_task(column_id)
        return True

    # ── Internals ────────────────────────────────────────────────────────────

    def _open_task(self, task_id: str) -> None:
        if self._on_task_click is not None:
            self._on_task_click(task_id)

    def _clear_active(self) -> None:
        if self.active_task is None:
            return
        card = self._cards.get(self.active_task.task_id)
        if card is not None and card.is_dragging:
            card.drag_ended()
        self.active_task = None

    def _apply(self, updates: List[MoveUpdate]) -> None:
        for update in updates:
            moved = self._tasks[update.task_id].moved(update.status, update.position)
            self._tasks[update.task_id] = moved
            self._cards[update.task_id].task = moved
            self._optimistic.add(update.task_id)

    def _report_error(self, exc: Exception) -> None:
        message = str(exc) or "Failed to move task"
        if len(message) > MAX_ERROR_MESSAGE_CHARS:
            message = GENERIC_MOVE_ERROR
        if self._on_error is None:
            return
        try:
            self._on_error(message)
        except Exception as e:
            logger.error(f"Error in on_error callback: {e}")
