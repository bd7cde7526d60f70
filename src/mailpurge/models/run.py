"""Run state data models for bulk deletion."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.exceptions import ValidationError


class RunStatus(Enum):
    """Lifecycle states of a deletion run."""

    IDLE = "idle"
    PREPARING = "preparing"
    DELETING = "deleting"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (RunStatus.PREPARING, RunStatus.DELETING)


TERMINAL_STATUSES = frozenset(
    {RunStatus.COMPLETED, RunStatus.ERROR, RunStatus.CANCELLED}
)


class EndType(Enum):
    """Terminal classification written to the action log."""

    SUCCESS = "success"
    USER_STOPPED = "user_stopped"
    RUNTIME_ERROR = "runtime_error"

    @property
    def run_status(self) -> RunStatus:
        return {
            EndType.SUCCESS: RunStatus.COMPLETED,
            EndType.USER_STOPPED: RunStatus.CANCELLED,
            EndType.RUNTIME_ERROR: RunStatus.ERROR,
        }[self]


class ReauthReason(Enum):
    """Why the caller has to re-establish Gmail credentials."""

    EXPIRED = "expired"


@dataclass(frozen=True)
class ReauthRequest:
    """A re-authentication requirement raised to the caller."""

    reason: ReauthReason = ReauthReason.EXPIRED
    eta: str | None = None


@dataclass(frozen=True)
class Target:
    """One sender whose messages should be deleted.

    Attributes:
        identifier: Sender email address
        estimated_count: Estimated number of messages from this sender
    """

    identifier: str
    estimated_count: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or not self.identifier.strip():
            raise ValidationError("Target identifier cannot be empty", field="identifier")
        if isinstance(self.estimated_count, bool) or not isinstance(
            self.estimated_count, int
        ):
            raise ValidationError(
                "Estimated count must be an integer",
                field="estimated_count",
                value=str(self.estimated_count),
            )
        if self.estimated_count < 0:
            raise ValidationError(
                "Estimated count cannot be negative",
                field="estimated_count",
                value=str(self.estimated_count),
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Target":
        """Create from a ``{"email": ..., "count": ...}`` style dictionary."""
        identifier = data.get("identifier", data.get("email", ""))
        count = data.get("estimated_count", data.get("count", 0))
        return cls(identifier=str(identifier).strip(), estimated_count=int(count))


@dataclass(frozen=True)
class DeleteOptions:
    """Optional knobs for a deletion run.

    Attributes:
        filter_rules: Extra Gmail search clauses ANDed with the sender query
    """

    filter_rules: tuple[str, ...] = ()


@dataclass(frozen=True)
class RunState:
    """Snapshot of a deletion run.

    The record is immutable; every change produces a new snapshot so
    observers never see a half-applied update.
    """

    status: RunStatus = RunStatus.IDLE
    progress_percent: int = 0
    total_estimate: int = 0
    processed_count: int = 0
    current_target: str | None = None
    error: str | None = None
    eta: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def evolve(self, **changes: Any) -> "RunState":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "total_estimate": self.total_estimate,
            "processed_count": self.processed_count,
            "current_target": self.current_target,
            "error": self.error,
            "eta": self.eta,
        }


@dataclass
class LogEntry:
    """Local mirror of an action log entry."""

    client_action_id: str
    estimated_count: int
    type: str = "delete"
    estimated_runtime_seconds: float = 0.0
    total_estimated_batches: int = 0
    query: str = ""
    durable_id: str | None = None
    batches_completed: int = 0
    processed_count: int = 0
    end_type: EndType | None = None
    error_message: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.end_type is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "client_action_id": self.client_action_id,
            "type": self.type,
            "estimated_count": self.estimated_count,
            "estimated_runtime_seconds": self.estimated_runtime_seconds,
            "total_estimated_batches": self.total_estimated_batches,
            "query": self.query,
            "durable_id": self.durable_id,
            "batches_completed": self.batches_completed,
            "processed_count": self.processed_count,
            "end_type": self.end_type.value if self.end_type else None,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat()
            if self.completed_at
            else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        """Create from dictionary."""
        end_type = data.get("end_type")
        completed_at = data.get("completed_at")
        return cls(
            client_action_id=data["client_action_id"],
            type=data.get("type", "delete"),
            estimated_count=data.get("estimated_count", 0),
            estimated_runtime_seconds=data.get("estimated_runtime_seconds", 0.0),
            total_estimated_batches=data.get("total_estimated_batches", 0),
            query=data.get("query", ""),
            durable_id=data.get("durable_id"),
            batches_completed=data.get("batches_completed", 0),
            processed_count=data.get("processed_count", 0),
            end_type=EndType(end_type) if end_type else None,
            error_message=data.get("error_message"),
            started_at=datetime.fromisoformat(data["started_at"])
            if data.get("started_at")
            else datetime.now(),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


@dataclass(frozen=True)
class DeleteJobPayload:
    """Payload handed to the ``delete`` job executor."""

    senders: tuple[Target, ...]
    options: DeleteOptions = DeleteOptions()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeleteJobPayload":
        senders = tuple(
            s if isinstance(s, Target) else Target.from_dict(s)
            for s in data.get("senders", [])
        )
        rules = tuple(data.get("filter_rules", ()))
        return cls(senders=senders, options=DeleteOptions(filter_rules=rules))


@dataclass(frozen=True)
class ExecutorResult:
    """Structured outcome every job executor resolves with."""

    success: bool
    processed_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "processed_count": self.processed_count,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
