"""Microsecond wall-clock timestamps."""

from __future__ import annotations

import time
from dataclasses import dataclass

__all__ = ["Timestamp"]

_MICROS_PER_SECOND = 1_000_000


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in time as microseconds since the Unix epoch."""

    microseconds: int = 0

    @classmethod
    def now(cls) -> Timestamp:
        return cls(time.time_ns() // 1000)

    def __str__(self) -> str:
        sign = -1 if self.microseconds < 0 else 1
        whole, fraction = divmod(abs(self.microseconds), _MICROS_PER_SECOND)
        seconds = sign * whole
        micros = sign * fraction
        moment = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(seconds))
        return f"{moment}.{micros:06d}"