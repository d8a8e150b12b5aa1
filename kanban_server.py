#!/usr/bin/env python3
"""
AgencyBoard Task Server
-----------------------
JSON API over the SQLite task store. Boards load a project's tasks from it
and persist drag-and-drop moves through POST /api/tasks/<id>/move.

Usage:
    python kanban_server.py --port 3000 --db ./tasks.db

API:
    GET    /api/columns                       → { columns }
    GET    /api/projects/<project>/tasks      → { tasks }   (?status=TODO,DONE)
    POST   /api/projects/<project>/tasks      → { task }    201
    GET    /api/tasks/<id>                    → { task }
    PUT    /api/tasks/<id>                    → { task }
    DELETE /api/tasks/<id>                    → { deleted }
    POST   /api/tasks/<id>/move               → { message, data: { id, status, position } }
    GET    /api/projects/<project>/stats      → { total, by_status, ... }
    GET    /api/activity                      → { activity }
    GET    /health

Mutating endpoints require the X-API-Key header to match
AGENCYBOARD_API_SECRET.
"""

import hmac
import logging
import math
import os
import sqlite3
from functools import wraps
from pathlib import Path

from flask import Flask, jsonify, request

from agencyboard.kanban.config import BoardConfig, ConfigError
from agencyboard.kanban.schema import DEFAULT_TABLE, TaskStatus
from agencyboard.kanban.store import DEFAULT_DB, TaskNotFound, TaskStore
from agencyboard.kanban.transforms import get_task_stats

app = Flask(__name__)
app.config.setdefault("BOARD_COLUMNS", DEFAULT_TABLE)

# Fields a client may set on create/update
TASK_FIELDS = (
    "title", "description", "priority", "due_date", "tags", "assignees",
    "comments_count", "attachments_count", "checklist_total",
    "checklist_completed",
)

# ── Auth ─────────────────────────────────────────────────────────────────────


def get_api_secret() -> str:
    return os.environ.get("AGENCYBOARD_API_SECRET", "")


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_api_secret()
        if not secret:
            return jsonify({"error": "API_SECRET not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Config ───────────────────────────────────────────────────────────────────


def get_db_path() -> Path:
    env = os.environ.get("AGENCYBOARD_DB")
    if env:
        return Path(env)
    return DEFAULT_DB


def get_store() -> TaskStore:
    return TaskStore(str(get_db_path()))


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _is_valid_position(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


# ── Routes ───────────────────────────────────────────────────────────────────


@app.route("/api/columns")
def api_columns():
    return jsonify({"columns": [c.to_dict() for c in app.config["BOARD_COLUMNS"]]})


@app.route("/api/projects/<project_id>/tasks", methods=["GET"])
def api_list_tasks(project_id):
    """List a project's tasks in board order."""
    statuses = None
    raw = request.args.get("status", "").strip()
    if raw:
        statuses = []
        for value in raw.split(","):
            status = TaskStatus.from_str(value)
            if status is None:
                return jsonify({"error": f"Invalid status: {value}"}), 400
            statuses.append(status)
    tasks = get_store().list_by_project(project_id, statuses)
    return jsonify({"tasks": [t.to_dict() for t in tasks]})


@app.route("/api/projects/<project_id>/tasks", methods=["POST"])
@require_api_key
def api_create_task(project_id):
    """Create a task at the end of its status group."""
    data = _json_body()
    title = str(data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "title is required"}), 400

    status = TaskStatus.from_str(data.get("status") or TaskStatus.TODO.value)
    if status is None:
        return jsonify({"error": f"Invalid status: {data.get('status')}"}), 400

    fields = {k: data[k] for k in TASK_FIELDS if k in data and k != "title"}
    if "created_by" in data:
        fields["created_by"] = data["created_by"]
    if "position" in data:
        if not _is_valid_position(data["position"]):
            return jsonify({"error": "Invalid position"}), 400
        fields["position"] = data["position"]

    try:
        task = get_store().create_task(project_id, title, status=status, **fields)
    except (ValueError, TypeError) as e:
        return jsonify({"error": str(e)}), 400
    except sqlite3.Error as e:
        app.logger.error(f"create_task failed for project {project_id}: {e}")
        return jsonify({"error": "Failed to create task", "details": str(e)}), 500
    return jsonify({"task": task.to_dict(), "id": task.task_id}), 201


@app.route("/api/tasks/<task_id>", methods=["GET"])
def api_get_task(task_id):
    task = get_store().get(task_id)
    if task is None:
        return jsonify({"error": "Task not found"}), 404
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>", methods=["PUT"])
@require_api_key
def api_update_task(task_id):
    """Update descriptive fields, or status through the list view."""
    data = _json_body()
    fields = {k: data[k] for k in TASK_FIELDS + ("status",) if k in data}
    if not fields:
        return jsonify({"error": "No updatable fields given"}), 400
    if "title" in fields and not str(fields["title"] or "").strip():
        return jsonify({"error": "title cannot be empty"}), 400

    try:
        task = get_store().update_task(task_id, **fields)
    except TaskNotFound:
        return jsonify({"error": "Task not found"}), 404
    except (ValueError, TypeError) as e:
        return jsonify({"error": str(e)}), 400
    except sqlite3.Error as e:
        app.logger.error(f"update_task failed for {task_id}: {e}")
        return jsonify({"error": "Failed to update task", "details": str(e)}), 500
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
@require_api_key
def api_delete_task(task_id):
    if not get_store().delete(task_id):
        return jsonify({"error": "Task not found"}), 404
    return jsonify({"deleted": True})


@app.route("/api/tasks/<task_id>/move", methods=["POST"])
@require_api_key
def api_move_task(task_id):
    """Persist a board move: { status, position }."""
    data = _json_body()
    status = TaskStatus.from_str(data.get("status"))
    position = data.get("position")

    if status is None:
        return jsonify({
            "error": "Invalid status",
            "details": f"Status must be one of: {', '.join(s.value for s in TaskStatus)}",
        }), 400
    if not _is_valid_position(position):
        return jsonify({
            "error": "Invalid position",
            "details": "Position must be a finite, non-negative number",
        }), 400

    try:
        task = get_store().move_task(task_id, status, position)
    except TaskNotFound:
        return jsonify({"error": "Task not found"}), 404
    except sqlite3.Error as e:
        app.logger.error(f"Error moving task {task_id}: {e}")
        return jsonify({"error": "Failed to move task", "details": str(e)}), 500

    return jsonify({
        "message": "Task moved successfully",
        "data": {"id": task.task_id, "status": task.status_value, "position": task.position},
    })


@app.route("/api/projects/<project_id>/stats")
def api_stats(project_id):
    """Per-status counts and completion rate for a project."""
    store = get_store()
    stats = get_task_stats(store.list_by_project(project_id))
    stats["by_status"] = store.get_stats(project_id)["by_status"]
    return jsonify(stats)


@app.route("/api/activity")
def api_activity():
    task_id = request.args.get("task_id") or None
    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    limit = max(1, min(limit, 500))
    return jsonify({"activity": get_store().recent_activity(task_id=task_id, limit=limit)})


@app.route("/health")
def health():
    return jsonify({"status": "ok", "db": str(get_db_path())})


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="AgencyBoard Task Server")
    parser.add_argument("--config", help="Path to agencyboard.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to tasks.db (overrides AGENCYBOARD_DB env var)")
    args = parser.parse_args()

    try:
        cfg = BoardConfig.load(args.config)
        app.config["BOARD_COLUMNS"] = cfg.column_table()
    except ConfigError as e:
        parser.error(str(e))

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
    )

    os.environ["AGENCYBOARD_DB"] = args.db or cfg.db_path
    if cfg.api_key:
        os.environ.setdefault("AGENCYBOARD_API_SECRET", cfg.api_key)

    host = args.host or cfg.host
    port = args.port or cfg.port
    app.logger.info(f"AgencyBoard server on http://{host}:{port} (db: {get_db_path()})")
    if not get_api_secret():
        app.logger.warning("AGENCYBOARD_API_SECRET is not set; mutating endpoints will return 503")

    app.run(host=host, port=port, debug=False, threaded=True)
