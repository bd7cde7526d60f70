"""Per-sender record of actions already taken."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.exceptions import ActionLogError
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class JsonSenderRegistry:
    """Stores ``{sender: {action: timestamp}}`` markers in a JSON file."""

    def __init__(self, registry_file: str | Path = ".mailpurge/senders.json"):
        self.registry_file = Path(registry_file)

    async def mark_action_taken(self, identifier: str, action: str) -> None:
        """Record that ``action`` was completed for ``identifier``.

        Raises:
            ActionLogError: If the registry file cannot be updated
        """
        await asyncio.to_thread(self._mark, identifier, action)

    def actions_for(self, identifier: str) -> dict[str, str]:
        return dict(self._read().get(identifier, {}))

    def _mark(self, identifier: str, action: str) -> None:
        data = self._read()
        data.setdefault(identifier, {})[action] = datetime.now().isoformat()
        try:
            self.registry_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.registry_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise ActionLogError(
                f"Failed to mark {action} for {identifier}",
                operation="mark_action_taken",
                details=str(e),
            ) from e

    def _read(self) -> dict[str, Any]:
        if not self.registry_file.exists():
            return {}
        try:
            with open(self.registry_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ActionLogError(
                "Failed to read sender registry",
                operation="read",
                details=str(e),
            ) from e
        return data if isinstance(data, dict) else {}
