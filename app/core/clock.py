from datetime import date, datetime, timezone
import math
from typing import Optional

DAYS_PER_YEAR = 365.25


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def age_in_years(date_of_birth: date, today: Optional[date] = None) -> int:
    """Whole years between date_of_birth and today, using 365.25-day years."""
    today = today or utcnow().date()
    return math.floor((today - date_of_birth).days / DAYS_PER_YEAR)
