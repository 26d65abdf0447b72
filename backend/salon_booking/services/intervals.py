"""
Minute-of-day interval helpers used by the availability engine.

Intervals are half-open ``[start, end)`` pairs of minutes after midnight.
Every function returns a normalized list: sorted, non-empty, non-overlapping
and with touching neighbours merged.
"""

from datetime import datetime, time
from typing import Iterable, List, NamedTuple

MINUTES_PER_DAY = 24 * 60


class Interval(NamedTuple):
    start: int
    end: int

    @classmethod
    def from_times(cls, open_time: time, close_time: time) -> "Interval":
        return cls(to_minutes(open_time), to_minutes(close_time))

    @classmethod
    def from_datetimes(cls, start_at: datetime, end_at: datetime, day_start: datetime) -> "Interval":
        """Clip a datetime range to the day beginning at ``day_start``."""
        start = int((start_at - day_start).total_seconds() // 60)
        end = int((end_at - day_start).total_seconds() // 60)
        return cls(max(start, 0), min(end, MINUTES_PER_DAY))


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def to_time(minute: int) -> time:
    return time(minute // 60, minute % 60)


def normalize(intervals: Iterable[Interval]) -> List[Interval]:
    result: List[Interval] = []
    for interval in sorted(intervals):
        if interval.end <= interval.start:
            continue
        if result and interval.start <= result[-1].end:
            last = result[-1]
            result[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            result.append(interval)
    return result


def intersect(a: Iterable[Interval], b: Iterable[Interval]) -> List[Interval]:
    left, right = normalize(a), normalize(b)
    result: List[Interval] = []
    i = j = 0
    while i < len(left) and j < len(right):
        start = max(left[i].start, right[j].start)
        end = min(left[i].end, right[j].end)
        if start < end:
            result.append(Interval(start, end))
        if left[i].end < right[j].end:
            i += 1
        else:
            j += 1
    return result


def subtract(source: Iterable[Interval], blocks: Iterable[Interval]) -> List[Interval]:
    current = normalize(source)
    for block in normalize(blocks):
        remaining: List[Interval] = []
        for interval in current:
            if block.end <= interval.start or block.start >= interval.end:
                remaining.append(interval)
                continue
            if block.start > interval.start:
                remaining.append(Interval(interval.start, block.start))
            if block.end < interval.end:
                remaining.append(Interval(block.end, interval.end))
        current = remaining
        if not current:
            break
    return normalize(current)


def union(a: Iterable[Interval], b: Iterable[Interval]) -> List[Interval]:
    return normalize([*a, *b])


def slot_starts(intervals: Iterable[Interval], duration: int, step: int) -> List[int]:
    """Start minutes of every window of ``duration`` that fits, ``step`` apart.

    Each open interval is scanned from its own start.
    """
    if duration <= 0:
        return []
    step = step if step > 0 else duration
    starts: List[int] = []
    for interval in normalize(intervals):
        latest_start = interval.end - duration
        start = interval.start
        while start <= latest_start:
            starts.append(start)
            start += step
    return starts


def overlaps_any(start: int, end: int, blocks: Iterable[Interval]) -> bool:
    return any(start < block.end and block.start < end for block in blocks)
