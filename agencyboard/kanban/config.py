# Board configuration
# Override via agencyboard.yaml or environment variables.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .client import TaskServiceClient
from .schema import DEFAULT_COLUMNS, ColumnConfig, ColumnTable, TaskStatus

CONFIG_PATH = Path.cwd() / "agencyboard.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for the task service and board clients."""

    # Task service
    db_path: str = "~/.local/share/agencyboard/tasks.db"
    api_url: str = "http://127.0.0.1:3000"
    api_key: str = ""
    request_timeout: float = 10.0

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    # Logging
    log_level: str = "INFO"

    # Column layout; empty = DEFAULT_COLUMNS
    # Each entry: {id, name, status, color}
    columns: List[Dict[str, Any]] = field(default_factory=list)

    def apply_env(self) -> None:
        """Environment variables win over the file."""
        self.db_path = os.environ.get("AGENCYBOARD_DB", self.db_path)
        self.api_url = os.environ.get("AGENCYBOARD_API_URL", self.api_url)
        self.api_key = os.environ.get("AGENCYBOARD_API_SECRET", self.api_key)
        self.db_path = str(Path(self.db_path).expanduser())

    def service_client(self) -> TaskServiceClient:
        return TaskServiceClient(self.api_url, api_key=self.api_key, timeout=self.request_timeout)

    def column_table(self) -> ColumnTable:
        """Build the status <-> column table, validating every entry."""
        if not self.columns:
            return ColumnTable(DEFAULT_COLUMNS)

        configs = []
        for i, raw in enumerate(self.columns):
            if not isinstance(raw, dict):
                raise ConfigError(f"columns[{i}] must be a mapping")
            column_id = str(raw.get("id") or "").strip()
            if not column_id:
                raise ConfigError(f"columns[{i}] has no id")
            status = TaskStatus.from_str(raw.get("status"))
            if status is None:
                raise ConfigError(
                    f"columns[{i}] ({column_id}) has invalid status {raw.get('status')!r}. "
                    f"Valid: {[s.value for s in TaskStatus]}"
                )
            configs.append(ColumnConfig(
                column_id=column_id,
                name=str(raw.get("name") or column_id),
                status=status,
                color=str(raw.get("color") or ""),
            ))
        try:
            return ColumnTable(configs)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        else:
            cfg = cls()
        cfg.apply_env()
        return cfg
