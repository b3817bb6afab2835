from pydantic import BaseModel


class HourlyActivity(BaseModel):
    sessions: int = 0
    minutes: int = 0


class HeatmapDay(BaseModel):
    date: str  # local YYYY-MM-DD
    day_name: str  # Mon, Tue, ...
    session_count: int
    focus_time_seconds: int
    hourly_activity: dict[int, HourlyActivity]  # hour 0-23, only hours with activity


class WeeklyHeatmap(BaseModel):
    week_offset: int
    days: list[HeatmapDay]
    total_sessions: int
    total_focus_time_seconds: int


class StreakData(BaseModel):
    current_streak: int
    longest_streak: int
    total_active_days: int
    last_30_day_keys: list[str]


class SummaryStats(BaseModel):
    total_sessions: int
    total_hours: int
    total_active_days: int
    average_hours_per_day: float
    weekly_growth_percent: int
    most_productive_day_name: str
    most_productive_hour: int
    completed_task_count: int


class StatsResponse(BaseModel):
    heatmap: WeeklyHeatmap
    streak: StreakData
    summary: SummaryStats
