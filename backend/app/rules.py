"""Weekly opening-hours evaluation.

A venue is open only where an explicit rule says so. Several rules on the same
weekday are merged, so split hours (morning and evening) and overlapping entries
both work. A booking that runs past midnight has to fit the rules of every day
it touches.
"""

from __future__ import annotations

from collections.abc import Iterable
from zoneinfo import ZoneInfo

from .intervals import Interval, day_of_week, split_by_local_day
from .models import AvailabilityRule


def windows_for_day(rules: Iterable[AvailabilityRule], weekday: int) -> list[tuple[int, int]]:
    return [rule.window for rule in rules if rule.day_of_week == weekday]


def merge_windows(windows: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    """Union of ``[open, close)`` minute windows; touching windows are joined."""
    merged: list[tuple[int, int]] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def _covered(windows: list[tuple[int, int]], start_minute: float, end_minute: float) -> bool:
    return any(open_ <= start_minute and end_minute <= close for open_, close in windows)


def is_within_rules(candidate: Interval, rules: Iterable[AvailabilityRule], tz: ZoneInfo) -> bool:
    rules = list(rules)
    if not rules:
        return False
    for day, start_minute, end_minute in split_by_local_day(candidate, tz):
        windows = merge_windows(windows_for_day(rules, day_of_week(day)))
        if not windows or not _covered(windows, start_minute, end_minute):
            return False
    return True


def weekly_schedule(rules: Iterable[AvailabilityRule]) -> dict[int, list[tuple[int, int]]]:
    """Merged windows per weekday, for display next to a venue."""
    schedule: dict[int, list[tuple[int, int]]] = {}
    rules = list(rules)
    for weekday in range(7):
        windows = merge_windows(windows_for_day(rules, weekday))
        if windows:
            schedule[weekday] = windows
    return schedule
