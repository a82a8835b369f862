import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from .config import settings
from .db import unit_of_work
from .models import Streak
from .profiles import get_profile
from .shop import consume_skip_cards
from .targets import (
    delete_future_targets, ensure_today_target, generate_future_targets,
    latest_past_target,
)
from .utils_time import add_days, days_between, local_date, resolve_now

logger = logging.getLogger(__name__)

# float noise: 2.37 - 2.0 must still earn 3 RP
EPSILON = 1e-9

class StreakState(str, enum.Enum):
    NO_STREAK = "no_streak"
    ACTIVE = "active"
    ACTIVE_WITH_DEBT = "active_with_debt"

class ReconcileOutcome(str, enum.Enum):
    NEW_USER = "new_user"
    ALREADY_RECONCILED = "already_reconciled"
    ON_TRACK = "on_track"
    FORGIVEN = "forgiven"
    PENALIZED = "penalized"
    RESET = "reset"

@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    target_km: float
    missed_days: int = 0
    credits_used: int = 0
    penalty_added_km: float = 0.0

@dataclass
class WorkoutOutcome:
    target_met: bool
    rp_earned: int
    penalty_cleared: float
    new_streak_value: int

def streak_state(streak: Streak) -> StreakState:
    if streak.current_streak == 0:
        return StreakState.NO_STREAK
    if streak.penalty_km > 0:
        return StreakState.ACTIVE_WITH_DEBT
    return StreakState.ACTIVE

def get_streak(db: Session, user_id: str, now: datetime | None = None) -> Streak:
    """Load the user's streak record, creating it with zero defaults on first access."""
    streak = db.get(Streak, user_id)
    if streak:
        return streak
    get_profile(db, user_id)
    streak = Streak(
        user_id=user_id,
        current_streak=0,
        longest_streak=0,
        penalty_km=0.0,
        last_run_date=None,
        last_met_date=None,
        updated_at=resolve_now(now),
    )
    db.add(streak)
    db.flush()
    logger.info("created streak record for %s", user_id)
    return streak

def reconcile_in_session(db: Session, user_id: str, now: datetime) -> ReconcileResult:
    """Reconcile without committing; used inside larger units of work."""
    today = local_date(now)
    streak = get_streak(db, user_id, now)

    if streak.last_run_date is None:
        return ReconcileResult(ReconcileOutcome.NEW_USER, ensure_today_target(db, user_id, now))

    if local_date(streak.updated_at) == today or streak.last_run_date == today:
        return ReconcileResult(ReconcileOutcome.ALREADY_RECONCILED, ensure_today_target(db, user_id, now))

    diff_days = days_between(streak.last_run_date, today)
    if diff_days <= 1:
        return ReconcileResult(ReconcileOutcome.ON_TRACK, ensure_today_target(db, user_id, now))

    missed = diff_days - 1
    used = consume_skip_cards(db, user_id, missed, now)
    remaining = missed - used
    streak.last_run_date = add_days(streak.last_run_date, used)
    streak.updated_at = now

    if remaining == 0:
        logger.info("user %s: %d missed day(s) forgiven by skip cards", user_id, missed)
        return ReconcileResult(
            ReconcileOutcome.FORGIVEN, ensure_today_target(db, user_id, now),
            missed_days=missed, credits_used=used,
        )

    if remaining == 1:
        prior = latest_past_target(db, user_id, today)
        penalty = prior.target_km if prior else settings.DEFAULT_PENALTY_KM
        streak.penalty_km = (streak.penalty_km or 0.0) + penalty
        logger.info("user %s: missed a day, penalty +%.1f km (now %.1f km)", user_id, penalty, streak.penalty_km)
        return ReconcileResult(
            ReconcileOutcome.PENALIZED, ensure_today_target(db, user_id, now),
            missed_days=missed, credits_used=used, penalty_added_km=penalty,
        )

    # Two or more uncovered days: the streak is gone and so is the debt
    logger.info("user %s: %d uncovered missed days, resetting streak of %d", user_id, remaining, streak.current_streak)
    streak.current_streak = 0
    streak.penalty_km = 0.0
    delete_future_targets(db, user_id, now)
    rows = generate_future_targets(db, user_id, 1, start_date=today)
    return ReconcileResult(
        ReconcileOutcome.RESET, rows[0].target_km,
        missed_days=missed, credits_used=used,
    )

def reconcile(db: Session, user_id: str, now: datetime | None = None) -> ReconcileResult:
    """
    Bring the streak record up to date with the calendar.

    Safe to call any number of times a day: the second call finds the record
    already stamped for today and only makes sure today's target exists.
    """
    now = resolve_now(now)
    with unit_of_work(db, "streak reconciliation"):
        result = reconcile_in_session(db, user_id, now)
    return result

def check_and_apply_penalties(db: Session, user_id: str, now: datetime | None = None) -> float:
    return reconcile(db, user_id, now).penalty_added_km

def score_workout(distance_km: float, target_km: float, penalty_km: float):
    """
    Pure scoring of one workout: returns (penalty_cleared, target_met, rp_earned).
    """
    cleared = min(distance_km, penalty_km) if penalty_km > 0 else 0.0
    remaining = distance_km - cleared
    if target_km > 0:
        target_met = remaining + EPSILON >= target_km
    else:
        # rest day
        target_met = distance_km > 0
    rp = 0
    if target_met and target_km > 0:
        excess = max(remaining - target_km, 0.0)
        rp = math.floor(excess * settings.RP_PER_KM + EPSILON)
    return cleared, target_met, rp

def apply_workout(
    db: Session, user_id: str, distance_km: float, target_km: float, now: datetime,
) -> WorkoutOutcome:
    """Session-level part of update_streak_after_workout; the caller commits."""
    if distance_km < 0:
        raise ValueError("distance_km must be >= 0")
    today = local_date(now)
    reconcile_in_session(db, user_id, now)
    streak = get_streak(db, user_id, now)

    cleared, target_met, rp = score_workout(distance_km, target_km, streak.penalty_km or 0.0)
    streak.penalty_km = max((streak.penalty_km or 0.0) - cleared, 0.0)

    if target_met and streak.last_met_date != today:
        streak.current_streak = 1 if streak.current_streak == 0 else streak.current_streak + 1
        streak.longest_streak = max(streak.longest_streak, streak.current_streak)
        streak.last_met_date = today
        generate_future_targets(db, user_id, streak.current_streak + 1, start_date=add_days(today, 1))
        logger.info("user %s: streak advanced to %d", user_id, streak.current_streak)

    streak.last_run_date = today
    streak.updated_at = now

    if rp:
        profile = get_profile(db, user_id)
        profile.rp_balance = (profile.rp_balance or 0) + rp

    return WorkoutOutcome(
        target_met=target_met,
        rp_earned=rp,
        penalty_cleared=cleared,
        new_streak_value=streak.current_streak,
    )

def update_streak_after_workout(
    db: Session, user_id: str, distance_km: float, target_km: float, now: datetime | None = None,
) -> WorkoutOutcome:
    """
    Score a finished workout and advance the streak.

    The streak record, the RP credit and the regenerated targets go out in a
    single commit; if it fails nothing is applied and the call can be retried.
    """
    now = resolve_now(now)
    with unit_of_work(db, "workout result"):
        outcome = apply_workout(db, user_id, distance_km, target_km, now)
    return outcome
