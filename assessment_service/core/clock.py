from __future__ import annotations

import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        """Current time as integer Unix epoch seconds (UTC)."""
        ...


class SystemClock:
    def now(self) -> int:
        return int(datetime.datetime.now(datetime.UTC).timestamp())


system_clock = SystemClock()
