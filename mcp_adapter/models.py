from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any


class HealthStatus(str, enum.Enum):
    OK = "ok"
    STARTING = "starting"  # grace period pending, or the child is gone


@dataclass
class ReadinessState:
    """Readiness flag owned by the supervisor.

    ``healthy`` is written once, by the grace-period timer, and never goes
    back to False.  It says nothing about whether the child is still alive.
    """

    healthy: bool = False
    started_at: float = field(default_factory=time.time)  # wall clock, seconds


@dataclass(frozen=True)
class HealthReport:
    status: HealthStatus
    uptime_seconds: float

    @property
    def http_status(self) -> int:
        return 200 if self.status is HealthStatus.OK else 503

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "uptimeSeconds": self.uptime_seconds}
