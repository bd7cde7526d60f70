"""Action log storage: a durable JSON store and a local current-action mirror."""

import asyncio
import json
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.exceptions import ActionLogError
from ..models.run import EndType, LogEntry
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class JsonActionLogStore:
    """Durable action log keeping one JSON document per action.

    Writes go through a worker thread so the event loop is never blocked.
    Every overwrite keeps a ``.backup`` copy of the previous version.
    """

    def __init__(self, log_dir: str | Path = ".mailpurge/actions"):
        """Initialize the store.

        Args:
            log_dir: Directory holding the action documents
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def get_action_path(self, log_id: str) -> Path:
        return self.log_dir / f"{log_id}.json"

    async def create(self, payload: dict[str, Any]) -> str:
        """Create an action document and return its id.

        Raises:
            ActionLogError: If the document cannot be written
        """
        log_id = uuid.uuid4().hex
        document = {
            **payload,
            "id": log_id,
            "created_at": datetime.now().isoformat(),
            "updated_at": datetime.now().isoformat(),
        }
        await asyncio.to_thread(self._write, log_id, document, "create")
        logger.debug(
            f"Created action log {log_id}",
            extra={"operation": "action_log_create", "action_log_id": log_id},
        )
        return log_id

    async def update(self, log_id: str, patch: dict[str, Any]) -> None:
        """Merge ``patch`` into an existing action document."""
        await asyncio.to_thread(self._merge, log_id, patch, "update")

    async def complete(
        self,
        log_id: str,
        end_type: EndType,
        processed_count: int,
        error: str | None = None,
    ) -> None:
        """Finalize an action document with its end type."""
        patch: dict[str, Any] = {
            "status": "completed",
            "end_type": end_type.value,
            "processed_count": processed_count,
            "completed_at": datetime.now().isoformat(),
        }
        if error is not None:
            patch["error_message"] = error
        await asyncio.to_thread(self._merge, log_id, patch, "complete")
        logger.debug(
            f"Completed action log {log_id} with {end_type.value}",
            extra={
                "operation": "action_log_complete",
                "action_log_id": log_id,
                "processed_count": processed_count,
            },
        )

    def load(self, log_id: str) -> dict[str, Any]:
        """Read an action document.

        Raises:
            ActionLogError: If the document is missing or unreadable
        """
        path = self.get_action_path(log_id)
        try:
            with open(path, encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
        except FileNotFoundError as e:
            raise ActionLogError(f"Action log not found: {log_id}", operation="load") from e
        except (OSError, ValueError) as e:
            raise ActionLogError(
                f"Failed to read action log {log_id}", operation="load", details=str(e)
            ) from e
        return data

    def list_actions(self) -> list[dict[str, Any]]:
        """List stored action documents, newest first."""
        actions = []
        for path in self.log_dir.glob("*.json"):
            try:
                actions.append(self.load(path.stem))
            except ActionLogError as e:
                logger.warning(f"Skipping unreadable action log {path.name}: {e}")
        actions.sort(key=lambda a: a.get("created_at", ""), reverse=True)
        return actions

    def _merge(self, log_id: str, patch: dict[str, Any], operation: str) -> None:
        document = self.load(log_id)
        document.update(patch)
        document["updated_at"] = datetime.now().isoformat()
        self._write(log_id, document, operation)

    def _write(self, log_id: str, document: dict[str, Any], operation: str) -> None:
        path = self.get_action_path(log_id)
        try:
            if path.exists():
                shutil.copy2(path, path.with_suffix(".json.backup"))
            tmp_path = path.with_suffix(".json.tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, default=str)
            tmp_path.replace(path)
        except OSError as e:
            raise ActionLogError(
                f"Failed to write action log {log_id}",
                operation=operation,
                details=str(e),
            ) from e


class LocalActionLog:
    """Local mirror of the action currently running.

    Kept in step with the durable log but never blocks on it: the durable
    id is attached whenever it becomes known, and write failures are only
    logged.
    """

    def __init__(self, state_file: str | Path | None = None):
        """Initialize the local log.

        Args:
            state_file: Optional JSON file mirroring the current action
        """
        self.state_file = Path(state_file) if state_file else None
        self.current: LogEntry | None = None

    def create(self, entry: LogEntry) -> None:
        self.current = entry
        self._flush()

    def set_durable_id(self, durable_id: str) -> None:
        if self.current is None:
            return
        self.current.durable_id = durable_id
        self._flush()

    def update_progress(self, batches_completed: int, processed_count: int) -> None:
        if self.current is None:
            return
        self.current.batches_completed = batches_completed
        self.current.processed_count = processed_count
        self._flush()

    def complete(self, end_type: EndType, error: str | None = None) -> None:
        if self.current is None or self.current.is_complete:
            return
        self.current.end_type = end_type
        self.current.error_message = error
        self.current.completed_at = datetime.now()
        self._flush()

    def clear(self) -> None:
        self.current = None
        if self.state_file is not None:
            try:
                self.state_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove local action log: {e}")

    def load(self) -> LogEntry | None:
        """Read back the mirrored action, e.g. after a crash."""
        if self.state_file is None or not self.state_file.exists():
            return None
        try:
            with open(self.state_file, encoding="utf-8") as f:
                return LogEntry.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to read local action log: {e}")
            return None

    def _flush(self) -> None:
        if self.state_file is None or self.current is None:
            return
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_file, "w", encoding="utf-8") as f:
                json.dump(self.current.to_dict(), f, indent=2)
        except OSError as e:
            logger.warning(
                f"Failed to write local action log: {e}",
                extra={"operation": "local_action_log"},
            )
