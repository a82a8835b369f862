from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.orm import Session

from .models import Workout
from .targets import get_month_targets
from .utils_time import month_bounds

@dataclass
class CalendarDay:
    date: date
    completed: bool
    has_target: bool
    target_km: float
    distance_km: float

def list_month_workouts(db: Session, user_id: str, year: int, month: int) -> list[Workout]:
    first, last = month_bounds(year, month)
    return (
        db.query(Workout)
        .filter(Workout.user_id == user_id, Workout.date >= first, Workout.date <= last)
        .order_by(Workout.started_at.desc(), Workout.id.desc())
        .all()
    )

def build_month_calendar(
    db: Session, user_id: str, year: int, month: int, include_targets: bool = True,
) -> list[CalendarDay]:
    """
    One entry per day of the month. A day with a target is completed when the
    day's total distance reaches it; a day without one when any distance was run.
    Friends see the workouts only, so their calendar is built without targets.
    """
    first, last = month_bounds(year, month)
    targets = {}
    if include_targets:
        targets = {t.effective_date: t.target_km for t in get_month_targets(db, user_id, year, month)}
    km_by_day: dict[date, float] = {}
    for w in list_month_workouts(db, user_id, year, month):
        km_by_day[w.date] = km_by_day.get(w.date, 0.0) + (w.distance_km or 0.0)

    days = []
    d = first
    while d <= last:
        total = km_by_day.get(d, 0.0)
        target = targets.get(d)
        days.append(CalendarDay(
            date=d,
            completed=total >= target if target is not None else total > 0,
            has_target=target is not None,
            target_km=target or 0.0,
            distance_km=total,
        ))
        d += timedelta(days=1)
    return days
