"""Pure aggregations over a snapshot of session and task history.

Every bucket is a local calendar date key (see ``local_date_key``); slicing
UTC timestamps would shift late-evening sessions onto the wrong day. None of
these functions touch storage and all of them accept empty input.

Sessions are anything exposing ``mode``, ``duration_seconds``,
``completed_at`` and ``was_completed`` (ORM rows or ``SessionResponse``).
Tasks expose ``is_completed`` and ``completed_at``.
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, timezone, tzinfo

from focustimer.schemas.stats import (
    HeatmapDay,
    HourlyActivity,
    StreakData,
    SummaryStats,
    WeeklyHeatmap,
)
from focustimer.utils.datetime_helper import (
    as_aware,
    date_key,
    local_date_key,
    local_today,
    to_local,
)
from focustimer.utils.numbers import round_half_up

DAY_ABBREVIATIONS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DEFAULT_PRODUCTIVE_HOUR = 14
STREAK_CALENDAR_DAYS = 30


def build_weekly_heatmap(
    sessions: Iterable,
    week_offset: int = 0,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> WeeklyHeatmap:
    """Seven local days ending on today shifted by ``week_offset`` weeks.

    Only completed sessions count. Each day is broken down by the local hour
    the session completed in; minutes are rounded per session.
    """
    anchor = local_today(now, tz) + timedelta(weeks=week_offset)
    window = [anchor - timedelta(days=i) for i in range(6, -1, -1)]

    by_day: dict[str, list] = defaultdict(list)
    for s in sessions:
        if s.was_completed:
            by_day[local_date_key(s.completed_at, tz)].append(s)

    days: list[HeatmapDay] = []
    for day in window:
        key = date_key(day)
        day_sessions = by_day.get(key, [])

        hourly: dict[int, HourlyActivity] = {}
        for s in day_sessions:
            hour = to_local(s.completed_at, tz).hour
            bucket = hourly.setdefault(hour, HourlyActivity())
            bucket.sessions += 1
            bucket.minutes += int(round_half_up(s.duration_seconds / 60))

        days.append(
            HeatmapDay(
                date=key,
                day_name=DAY_ABBREVIATIONS[day.weekday()],
                session_count=len(day_sessions),
                focus_time_seconds=sum(s.duration_seconds for s in day_sessions),
                hourly_activity=dict(sorted(hourly.items())),
            )
        )

    return WeeklyHeatmap(
        week_offset=week_offset,
        days=days,
        total_sessions=sum(d.session_count for d in days),
        total_focus_time_seconds=sum(d.focus_time_seconds for d in days),
    )


def _first_most_common(counts: Counter, order: Sequence):
    """Highest count; ties go to whichever key comes first in ``order``."""
    best = None
    for key in order:
        if counts[key] > 0 and (best is None or counts[key] > counts[best]):
            best = key
    return best


def compute_summary_stats(
    sessions: Sequence,
    tasks: Sequence = (),
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> SummaryStats:
    completed_sessions = [s for s in sessions if s.was_completed]
    completed_tasks = [t for t in tasks if t.is_completed]

    if not completed_sessions and not completed_tasks:
        return SummaryStats(
            total_sessions=0,
            total_hours=0,
            total_active_days=0,
            average_hours_per_day=0.0,
            weekly_growth_percent=0,
            most_productive_day_name="N/A",
            most_productive_hour=0,
            completed_task_count=0,
        )

    total_seconds = sum(s.duration_seconds for s in completed_sessions)
    total_hours = int(round_half_up(total_seconds / 3600))

    active_days = {local_date_key(s.completed_at, tz) for s in completed_sessions}
    active_days.update(
        local_date_key(t.completed_at, tz) for t in completed_tasks if t.completed_at
    )
    total_active_days = len(active_days)
    average = (
        round_half_up(total_hours / total_active_days, 1) if total_active_days else 0.0
    )

    # Most productive day/hour look at every session, finished or not
    day_counts: Counter = Counter()
    hour_counts: Counter = Counter()
    for s in sessions:
        local = to_local(s.completed_at, tz)
        day_counts[local.weekday()] += 1
        hour_counts[local.hour] += 1

    best_day = _first_most_common(day_counts, range(7))
    best_hour = _first_most_common(hour_counts, range(24))

    return SummaryStats(
        total_sessions=len(completed_sessions),
        total_hours=total_hours,
        total_active_days=total_active_days,
        average_hours_per_day=average,
        weekly_growth_percent=weekly_growth_percent(sessions, now=now),
        most_productive_day_name=DAY_NAMES[best_day] if best_day is not None else "N/A",
        most_productive_hour=best_hour if best_hour is not None else DEFAULT_PRODUCTIVE_HOUR,
        completed_task_count=len(completed_tasks),
    )


def weekly_growth_percent(sessions: Iterable, *, now: datetime | None = None) -> int:
    """Percent change of the trailing 7 days over the 7 days before them.

    Reports 0 when the earlier window is empty, including growth from zero.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = as_aware(now)
    recent_start = now - timedelta(days=7)
    previous_start = now - timedelta(days=14)

    recent = previous = 0
    for s in sessions:
        completed_at = as_aware(s.completed_at)
        if completed_at >= recent_start:
            recent += 1
        elif completed_at >= previous_start:
            previous += 1

    if previous == 0:
        return 0
    return int(round_half_up((recent - previous) / previous * 100))


def compute_streak(
    sessions: Iterable,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> StreakData:
    today = local_today(now, tz)
    calendar = [
        date_key(today - timedelta(days=i))
        for i in range(STREAK_CALENDAR_DAYS - 1, -1, -1)
    ]

    active = {to_local(s.completed_at, tz).date() for s in sessions if s.was_completed}

    current = 0
    day = today
    while day in active:
        current += 1
        day -= timedelta(days=1)

    longest = _longest_run(sorted(active))

    return StreakData(
        current_streak=current,
        longest_streak=max(longest, current),
        total_active_days=len(active),
        last_30_day_keys=calendar,
    )


def _longest_run(days: Sequence[date]) -> int:
    if not days:
        return 0
    longest = run = 1
    for prev, curr in zip(days, days[1:]):
        if (curr - prev).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest
