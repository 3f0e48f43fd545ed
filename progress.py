#!/usr/bin/env python3
"""
Progress statistics
Summarizes a user's logged workouts over a trailing window of days
"""

import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from models import WorkoutRecord, utcnow

DEFAULT_STATS_DAYS = 30
# Ten years; keeps now - days well inside the datetime range
MAX_STATS_DAYS = 3650


def round_half_up(value: float) -> int:
    """Round .5 away from zero, unlike Python's round() which rounds to even"""
    return int(math.floor(value + 0.5))


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    """Earliest workout date included in a window of `days`"""
    return (now or utcnow()) - timedelta(days=days)


def compute_stats(workouts: Iterable[WorkoutRecord], days: int = DEFAULT_STATS_DAYS,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the stats report for one user's workouts

    Only workouts on or after (now - days) are counted. workoutsByDay has one
    entry per calendar date, oldest first; workoutsByType only lists types
    that actually occur in the window.
    """
    start = window_start(days, now)
    # Sort explicitly so workoutsByDay is chronological whatever the input order
    in_window = sorted(
        (w for w in workouts if w.workout_date >= start),
        key=lambda w: w.workout_date,
    )

    total_duration = sum(w.duration for w in in_window)
    total_calories = sum(w.calories_burned or 0 for w in in_window)

    stats = {
        'totalWorkouts': len(in_window),
        'totalDuration': total_duration,
        'totalCalories': total_calories,
        'averageDuration': 0,
        'workoutsByType': {},
        'workoutsByDay': [],
    }

    if in_window:
        stats['averageDuration'] = round_half_up(total_duration / len(in_window))

    # Group by type
    for workout in in_window:
        stats['workoutsByType'][workout.type] = stats['workoutsByType'].get(workout.type, 0) + 1

    # Group by day for the chart (dicts keep first-seen order)
    daily: Dict[str, Dict[str, Any]] = {}
    for workout in in_window:
        day = workout.workout_date.date().isoformat()
        if day not in daily:
            daily[day] = {'date': day, 'count': 0, 'duration': 0, 'calories': 0}
        daily[day]['count'] += 1
        daily[day]['duration'] += workout.duration
        daily[day]['calories'] += workout.calories_burned or 0

    stats['workoutsByDay'] = list(daily.values())
    return stats


def parse_days(value, default: int = DEFAULT_STATS_DAYS) -> int:
    """Parse the ?days= query parameter, falling back to the default"""
    if value is None or value == '':
        return default
    try:
        days = int(value)
    except (TypeError, ValueError):
        return default
    if days <= 0:
        return default
    return min(days, MAX_STATS_DAYS)
