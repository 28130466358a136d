from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(slots=True)
class AgentHealth:
    name: str
    healthy: bool = False
    ready: bool = False
    last_error: str | None = None
    last_success_at: datetime | None = None
    last_cycle_at: datetime | None = None
    counters: dict[str, int] = field(default_factory=dict)

    def begin_cycle(self) -> None:
        self.last_cycle_at = datetime.now(timezone.utc)

    def cycle_succeeded(self) -> None:
        self.healthy = True
        self.ready = True
        self.last_error = None
        self.last_success_at = datetime.now(timezone.utc)

    def cycle_failed(self, error: Exception) -> None:
        self.healthy = False
        self.last_error = f"{type(error).__name__}: {error}"

    def increment(self, counter: str, amount: int = 1) -> None:
        self.counters[counter] = self.counters.get(counter, 0) + amount

    def payload(self) -> dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "ready": self.ready,
            "last_error": self.last_error,
            "last_success_at": _iso(self.last_success_at),
            "last_cycle_at": _iso(self.last_cycle_at),
            "counters": dict(self.counters),
        }
