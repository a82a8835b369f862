import logging
import math
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import settings
from .models import DailyTarget, Streak, Workout
from .utils_time import add_days, local_date, month_bounds, resolve_now

logger = logging.getLogger(__name__)

# (first day, last day, km on first day, km on last day)
PHASES = (
    (1, 30, 1.0, 2.5),
    (31, 60, 2.5, 4.0),
    (61, 100, 4.0, 6.0),
    (101, 200, 6.0, 8.0),
)
CAP_DAY = PHASES[-1][1]

def round_half_km(km: float) -> float:
    return math.floor(km * 2 + 0.5) / 2

def target_for_streak_day(day: int) -> float:
    if day < 1:
        raise ValueError("streak day starts at 1")
    day = min(day, CAP_DAY)
    for first, last, start_km, end_km in PHASES:
        if day <= last:
            raw = start_km + (end_km - start_km) * (day - first) / (last - first)
            return round_half_km(raw)
    raise AssertionError("unreachable: day is capped")

def generate_future_targets(
    db: Session,
    user_id: str,
    start_streak_day: int,
    days_ahead: int | None = None,
    start_date: date | None = None,
    now: datetime | None = None,
) -> list[DailyTarget]:
    if days_ahead is None:
        days_ahead = settings.TARGET_WINDOW_DAYS
    if start_date is None:
        start_date = local_date(resolve_now(now))
    end_date = add_days(start_date, days_ahead - 1)

    existing = {
        t.effective_date: t
        for t in db.query(DailyTarget).filter(
            DailyTarget.user_id == user_id,
            DailyTarget.effective_date >= start_date,
            DailyTarget.effective_date <= end_date,
        )
    }

    # Upsert rows (an existing date is overwritten on purpose)
    rows = []
    for i in range(days_ahead):
        d = add_days(start_date, i)
        row = existing.get(d)
        if not row:
            row = DailyTarget(user_id=user_id, effective_date=d)
            db.add(row)
        row.target_km = target_for_streak_day(start_streak_day + i)
        rows.append(row)
    db.flush()
    logger.debug("generated %d targets for %s from %s (day %d)", days_ahead, user_id, start_date, start_streak_day)
    return rows

def delete_future_targets(db: Session, user_id: str, now: datetime | None = None) -> int:
    tomorrow = add_days(local_date(resolve_now(now)), 1)
    n = (
        db.query(DailyTarget)
        .filter(DailyTarget.user_id == user_id, DailyTarget.effective_date >= tomorrow)
        .delete(synchronize_session="fetch")
    )
    logger.info("deleted %d future targets for %s", n, user_id)
    return n

def get_target(db: Session, user_id: str, d: date) -> DailyTarget | None:
    return db.query(DailyTarget).filter_by(user_id=user_id, effective_date=d).first()

def ensure_today_target(db: Session, user_id: str, now: datetime | None = None) -> float:
    """
    Today's target. An existing row is returned as is; otherwise today becomes
    day current_streak + 1 and the window is generated from there.
    """
    now = resolve_now(now)
    today = local_date(now)
    row = get_target(db, user_id, today)
    if row:
        return row.target_km

    streak = db.get(Streak, user_id)
    start_day = (streak.current_streak if streak else 0) + 1
    generate_future_targets(db, user_id, start_day, start_date=today)
    return target_for_streak_day(start_day)

def latest_past_target(db: Session, user_id: str, before: date) -> DailyTarget | None:
    return (
        db.query(DailyTarget)
        .filter(DailyTarget.user_id == user_id, DailyTarget.effective_date < before)
        .order_by(DailyTarget.effective_date.desc())
        .first()
    )

def get_month_targets(db: Session, user_id: str, year: int, month: int) -> list[DailyTarget]:
    first, last = month_bounds(year, month)
    return (
        db.query(DailyTarget)
        .filter(
            DailyTarget.user_id == user_id,
            DailyTarget.effective_date >= first,
            DailyTarget.effective_date <= last,
        )
        .order_by(DailyTarget.effective_date.asc())
        .all()
    )

def get_today_distance(db: Session, user_id: str, now: datetime | None = None) -> float:
    today = local_date(resolve_now(now))
    total = (
        db.query(func.coalesce(func.sum(Workout.distance_km), 0.0))
        .filter(Workout.user_id == user_id, Workout.date == today)
        .scalar()
    )
    return float(total or 0)
