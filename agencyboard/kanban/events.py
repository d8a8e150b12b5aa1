"""
Change feed: push notifications for task inserts, updates and deletes.

The store publishes after each committed write. Board owners subscribe to
learn that their snapshot is out of date.
"""
import logging
from typing import Callable, List, Optional, Tuple

from .schema import Task

logger = logging.getLogger(__name__)

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")

ChangeCallback = Callable[..., None]


class TaskChangeFeed:
    """Routes task change events to subscribers."""

    def __init__(self):
        # (event filter, project filter, callback)
        self.subscribers: List[Tuple[str, Optional[str], ChangeCallback]] = []

    def subscribe(
        self,
        callback: ChangeCallback,
        event: str = "*",
        project_id: Optional[str] = None,
    ) -> Callable[[], None]:
        """
        Register a callback. It is called as
        ``callback(event=..., task=..., old=...)``.

        Returns a zero-argument function that removes the subscription.
        """
        if event != "*" and event not in EVENT_TYPES:
            raise ValueError(f"Invalid event type: {event}")
        entry = (event, project_id, callback)
        self.subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self.subscribers:
                self.subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: str, task: Task, old: Optional[Task] = None) -> int:
        """Deliver an event; returns how many subscribers received it."""
        if event not in EVENT_TYPES:
            raise ValueError(f"Invalid event type: {event}")
        delivered = 0
        for wanted, project_id, callback in list(self.subscribers):
            if wanted != "*" and wanted != event:
                continue
            if project_id is not None and project_id != task.project_id:
                continue
            try:
                callback(event=event, task=task, old=old)
                delivered += 1
            except Exception as e:
                logger.error(f"Error in {event} subscriber: {e}")
        return delivered

