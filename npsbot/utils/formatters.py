from html import escape
from datetime import datetime, timedelta
from typing import Optional

from npsbot.domain.enums import CodeStatus, NPSCategory

STATUS_LABELS = {
    CodeStatus.PENDING: "⏳ Pending",
    CodeStatus.IN_PROGRESS: "✏️ In progress",
    CodeStatus.COMPLETED: "✅ Completed",
}

CATEGORY_LABELS = {
    NPSCategory.PROMOTER: "🟢 Promoter",
    NPSCategory.NEUTRAL: "🟡 Neutral",
    NPSCategory.DETRACTOR: "🔴 Detractor",
}


def format_datetime(dt: Optional[datetime]) -> str:
    if dt is None:
        return "—"
    return dt.strftime("%Y-%m-%d %H:%M")


def format_progress(step: int, total: int, width: int = 10) -> str:
    """
    Text progress bar for question screens.

    3 of 5 -> "▰▰▰▰▰▰▱▱▱▱ 3/5"
    """
    if total <= 0:
        return ""
    filled = round(width * step / total)
    return f"{'▰' * filled}{'▱' * (width - filled)} {step}/{total}"


def format_answer(value) -> str:
    if value is None or value == "":
        return "<i>Not provided</i>"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return escape(str(value))


def format_duration(duration: Optional[timedelta]) -> str:
    if duration is None:
        return "—"
    seconds = max(int(duration.total_seconds()), 0)
    return f"{seconds // 60}m {seconds % 60}s"
