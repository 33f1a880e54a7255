from daybook.streaks.calculator import (
    ActivitySummary,
    StreakSnapshot,
    StreakStatus,
    compute_streak,
    summarize_activity,
)

__all__ = [
    "ActivitySummary",
    "StreakSnapshot",
    "StreakStatus",
    "compute_streak",
    "summarize_activity",
]
