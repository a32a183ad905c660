"""Block and timeout streak tracking for one controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from pathlib import Path
from typing import Any

from ozon_scout.logging_config import get_logger

LOGGER = get_logger(__name__)


class HealthState(str, Enum):
    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


_SEVERITY = [HealthState.HEALTHY, HealthState.SUSPECT, HealthState.BLOCKED]

# Extra seconds to pause between batch items in each state.
EXTRA_DELAY_S = {
    HealthState.HEALTHY: 0.0,
    HealthState.SUSPECT: 5.0,
    HealthState.BLOCKED: 15.0,
}


def _severity(streak: int, thresholds: tuple[int, int]) -> int:
    suspect_at, blocked_at = thresholds
    if streak >= blocked_at:
        return 2
    if streak >= suspect_at:
        return 1
    return 0


@dataclass
class HealthMonitor:
    """Classifies navigation outcomes into a health state.

    ``block_threshold`` and ``timeout_threshold`` are ``(suspect, blocked)``
    streak lengths. Any successful navigation clears both streaks. When
    ``log_path`` is set every event is appended there as one JSON object per
    line.
    """

    log_path: Path | None = None
    block_threshold: tuple[int, int] = (1, 3)
    timeout_threshold: tuple[int, int] = (2, 4)
    state: HealthState = field(init=False, default=HealthState.HEALTHY)
    block_streak: int = field(init=False, default=0)
    timeout_streak: int = field(init=False, default=0)
    session_restarts: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.log_path is not None:
            self.log_path = Path(self.log_path)
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _emit(self, event: str, message: str, **details: Any) -> None:
        LOGGER.debug("health %s [%s] %s", event, self.state.value, message)
        if self.log_path is None:
            return
        record = {
            "ts": time.time(),
            "event": event,
            "state": self.state.value,
            "message": message,
            "details": details,
        }
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False) + "\n")

    def _reclassify(self) -> None:
        level = max(
            _severity(self.block_streak, self.block_threshold),
            _severity(self.timeout_streak, self.timeout_threshold),
        )
        current = _SEVERITY[level]
        if current is self.state:
            return
        previous, self.state = self.state, current
        LOGGER.info("Health state %s -> %s", previous.value, current.value)
        self._emit(
            "state_change",
            f"{previous.value} -> {current.value}",
            block_streak=self.block_streak,
            timeout_streak=self.timeout_streak,
        )

    def record_success(self, *, url: str) -> None:
        if self.state is not HealthState.HEALTHY:
            self._emit("recovered", f"Clean page at {url}")
        self.block_streak = 0
        self.timeout_streak = 0
        self._reclassify()

    def record_block(self, *, url: str, title: str | None) -> None:
        self.block_streak += 1
        self._emit("blocked", title or "block signature", url=url, block_streak=self.block_streak)
        self._reclassify()

    def record_timeout(self, *, url: str, reason: str) -> None:
        self.timeout_streak += 1
        self._emit("timeout", reason, url=url, timeout_streak=self.timeout_streak)
        self._reclassify()

    def record_session_restart(self, *, reason: str) -> None:
        self.session_restarts += 1
        self._emit("session_restart", reason, restarts=self.session_restarts)

    def recommended_extra_delay(self) -> float:
        return EXTRA_DELAY_S[self.state]
