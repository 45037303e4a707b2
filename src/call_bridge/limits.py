"""Usage allowance checks consulted before a bridge session starts."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Callable, Protocol


class UsageLimitExceeded(RuntimeError):
    """Raised when a session may not start because the usage allowance is spent."""


@dataclass(slots=True)
class UsageAllowance:
    allowed: bool
    remaining: int | None
    reason: str | None = None


class UsageLimiter(Protocol):
    def check(self, key: str = "default") -> UsageAllowance:
        """Report whether another session may start for ``key``."""

    def record(self, key: str = "default") -> None:
        """Count one started session against ``key``."""


class UnlimitedUsage:
    def check(self, key: str = "default") -> UsageAllowance:
        return UsageAllowance(allowed=True, remaining=None)

    def record(self, key: str = "default") -> None:
        return None


class DailyUsageLimiter:
    """In-memory per-day session counter."""

    def __init__(self, max_daily: int = 3, *, today: Callable[[], date] = date.today) -> None:
        if max_daily < 0:
            raise ValueError("max_daily must be non-negative")
        self._max_daily = max_daily
        self._today = today
        self._counts: dict[tuple[date, str], int] = defaultdict(int)

    def check(self, key: str = "default") -> UsageAllowance:
        used = self._counts[(self._today(), key)]
        remaining = max(0, self._max_daily - used)
        if used >= self._max_daily:
            return UsageAllowance(
                allowed=False,
                remaining=0,
                reason="Daily session limit reached. Try again tomorrow.",
            )
        return UsageAllowance(allowed=True, remaining=remaining)

    def record(self, key: str = "default") -> None:
        self._counts[(self._today(), key)] += 1
