# services/deadline.py
import time
from typing import Callable, Optional

from ai_providers.errors import ProcessingTimeoutError


class Deadline:
    """A point in (monotonic) time shared by every step of one request."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self.clock = clock
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self, step: str = "") -> None:
        if self.expired():
            where = f" before {step}" if step else ""
            raise ProcessingTimeoutError(
                f"Time budget of {self.seconds:g}s exhausted{where}",
                {"budget_seconds": self.seconds, "step": step},
            )

    @staticmethod
    def earliest(*deadlines: Optional["Deadline"]) -> Optional["Deadline"]:
        live = [d for d in deadlines if d is not None]
        if not live:
            return None
        return min(live, key=lambda d: d.expires_at)
