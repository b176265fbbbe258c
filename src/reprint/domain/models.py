from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class RunStatus(str, Enum):
    READY = "Ready"
    BUSY = "Busy"
    PAUSED = "Paused"
    COMPLETED = "Completed"


class TaskKind(str, Enum):
    RECYCLE = "Recycle"


class LogLevel(str, Enum):
    ERROR = "error"
    INFO = "info"
    RESOLVED = "resolved"


class Redirect(str, Enum):
    DEVICES = "devices"
    LOGS = "logs"


@dataclass(frozen=True)
class Device:
    id: str
    display_name: str


@dataclass
class RunRecord:
    status: RunStatus = RunStatus.READY
    task: Optional[TaskKind] = None
    progress: float = 0.0
    sub_progress: float = 0.0
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["task"] = self.task.value if self.task else None
        return data


@dataclass
class LogEntry:
    id: str
    timestamp: float
    level: LogLevel
    message: str


@dataclass
class ActionResult:
    """Outcome of a gated command. Rejections carry the view to redirect to."""

    ok: bool
    redirect: Optional[Redirect] = None
    device_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def accepted(cls, device_id: str) -> "ActionResult":
        return cls(ok=True, device_id=device_id)

    @classmethod
    def rejected(cls, redirect: Redirect, reason: str, device_id: Optional[str] = None) -> "ActionResult":
        return cls(ok=False, redirect=redirect, device_id=device_id, reason=reason)

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "redirect": self.redirect.value if self.redirect else None,
            "device_id": self.device_id,
            "reason": self.reason,
        }
