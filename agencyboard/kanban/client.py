"""
HTTP client for the task service (kanban_server.py).

Every call either returns parsed data or raises TaskServiceError; transport
failures and server rejections look the same to callers.
"""
import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskServiceError(Exception):
    """A task service call failed (network error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def _status_value(status: Union[TaskStatus, str]) -> str:
    return status.value if isinstance(status, TaskStatus) else str(status)


def _payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy of task fields."""
    payload = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        payload[key] = value
    return payload


class TaskServiceClient:
    """Thin requests wrapper around the JSON API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TaskServiceError(f"Could not reach task service: {e}") from e

        if not r.ok:
            try:
                body = r.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            message = body.get("error") or body.get("message") or f"Request failed ({r.status_code})"
            details = body.get("details")
            logger.error(f"{method} {url} -> {r.status_code}: {message} {details or ''}".rstrip())
            if details:
                message = f"{message}: {details}"
            raise TaskServiceError(message, status_code=r.status_code, details=details)

        if r.status_code == 204 or not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise TaskServiceError(f"Invalid JSON from {url}", status_code=r.status_code) from e

    # ── Tasks ────────────────────────────────────────────────────────────────

    def list_tasks(
        self,
        project_id: str,
        statuses: Optional[Iterable[Union[TaskStatus, str]]] = None,
    ) -> List[Task]:
        params = {}
        if statuses:
            params["status"] = ",".join(_status_value(s) for s in statuses)
        data = self._request("GET", f"/api/projects/{project_id}/tasks", params=params)
        return [Task.from_dict(t) for t in data.get("tasks", [])]

    def get_task(self, task_id: str) -> Task:
        data = self._request("GET", f"/api/tasks/{task_id}")
        return Task.from_dict(data["task"])

    def create_task(self, project_id: str, title: str, **fields: Any) -> Task:
        payload = _payload(dict(fields, title=title))
        data = self._request("POST", f"/api/projects/{project_id}/tasks", json=payload)
        return Task.from_dict(data["task"])

    def update_task(self, task_id: str, **fields: Any) -> Task:
        payload = _payload(fields)
        data = self._request("PUT", f"/api/tasks/{task_id}", json=payload)
        return Task.from_dict(data["task"])

    def delete_task(self, task_id: str) -> bool:
        data = self._request("DELETE", f"/api/tasks/{task_id}")
        return bool(data.get("deleted"))

    def move_task(self, task_id: str, status: Union[TaskStatus, str], position: float) -> Dict[str, Any]:
        """Persist a board move. Returns the server's {id, status, position}."""
        data = self._request(
            "POST",
            f"/api/tasks/{task_id}/move",
            json={"status": _status_value(status), "position": position},
        )
        logger.debug(f"Task {task_id} moved: {data}")
        return data.get("data", {})
