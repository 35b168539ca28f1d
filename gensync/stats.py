"""Byte and time accounting for a single sync attempt."""

import math
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum


class StatID(Enum):
    """Stat categories tracked per sync method."""

    XMIT = "xmit"  # bytes transmitted
    RECV = "recv"  # bytes received
    COMM_TIME = "comm_time"  # time spent sending and receiving
    IDLE_TIME = "idle_time"  # time spent waiting for the peer
    COMP_TIME = "comp_time"  # time spent computing
    ALL = "all"


BYTE_STATS = (StatID.XMIT, StatID.RECV)
TIME_STATS = (StatID.COMM_TIME, StatID.IDLE_TIME, StatID.COMP_TIME)
COUNTER_STATS = BYTE_STATS + TIME_STATS


class TimerError(RuntimeError):
    """A timer was ended without a matching start, or started on a byte stat."""


class SyncStats:
    """Counters describing the most recent sync attempt of one method."""

    def __init__(self) -> None:
        self._data: dict[StatID, float] = {stat: 0 for stat in COUNTER_STATS}
        self._started: dict[StatID, float] = {}

    def reset(self, stat_id: StatID = StatID.ALL) -> None:
        """Reset the given counter (or all of them) to zero."""
        for stat in self._expand(stat_id, COUNTER_STATS):
            self._data[stat] = 0

    def get_stat(self, stat_id: StatID) -> float:
        """Return a single counter. ALL is not supported; use snapshot()."""
        if stat_id is StatID.ALL:
            raise ValueError("get_stat() does not support StatID.ALL")
        return self._data[stat_id]

    def increment(self, stat_id: StatID, amount: float) -> None:
        """Add to a counter. Byte counters are truncated toward zero."""
        for stat in self._expand(stat_id, COUNTER_STATS):
            if stat in BYTE_STATS:
                self._data[stat] += math.trunc(amount)
            else:
                self._data[stat] += amount

    def timer_start(self, stat_id: StatID) -> None:
        """Start timing a time stat (ALL starts the three time stats)."""
        now = time.perf_counter()
        for stat in self._expand(stat_id, TIME_STATS):
            if stat not in TIME_STATS:
                raise TimerError(f"{stat.name} is not a time stat")
            self._started[stat] = now

    def timer_end(self, stat_id: StatID) -> None:
        """Add the time elapsed since timer_start() to the stat.

        Raises:
            TimerError: If no matching timer_start() is pending.
        """
        now = time.perf_counter()
        stats = self._expand(stat_id, TIME_STATS)
        missing = [stat.name for stat in stats if stat not in self._started]
        if missing:
            raise TimerError(f"timer_end() without timer_start() for {', '.join(missing)}")
        for stat in stats:
            self._data[stat] += now - self._started.pop(stat)

    def is_running(self, stat_id: StatID) -> bool:
        return stat_id in self._started

    def total_time(self) -> float:
        """Communication + idle + computation time."""
        return sum(self._data[stat] for stat in TIME_STATS)

    def snapshot(self) -> dict[str, float]:
        """Copy of all counters keyed by stat value."""
        return {stat.value: self._data[stat] for stat in COUNTER_STATS}

    @contextmanager
    def timer(self, stat_id: StatID) -> Iterator[None]:
        """Time the enclosed block; the stat is committed on every exit path."""
        self.timer_start(stat_id)
        try:
            yield
        finally:
            self.timer_end(stat_id)

    @staticmethod
    def _expand(stat_id: StatID, group: tuple[StatID, ...]) -> tuple[StatID, ...]:
        if stat_id is StatID.ALL:
            return group
        return (stat_id,)
