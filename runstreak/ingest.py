import json
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from .db import unit_of_work
from .models import Workout
from .profiles import get_profile
from .route import RoutePoint, estimate_calories, to_geojson, total_distance_km
from .schemas import WorkoutIn
from .streaks import WorkoutOutcome, apply_workout, reconcile_in_session
from .targets import ensure_today_target
from .utils_time import as_utc, local_date, resolve_now

logger = logging.getLogger(__name__)

def record_workout(db: Session, user_id: str, data: WorkoutIn, now: datetime | None = None):
    """
    Save a finished run and score it against today's target.
    The workout row and the streak update are committed together.
    """
    now = resolve_now(now)
    points = [RoutePoint(**p.model_dump()) for p in data.route]
    distance = data.distance_km if data.distance_km is not None else total_distance_km(points)
    calories = data.calories
    if calories is None:
        calories = estimate_calories(distance, data.duration_sec / 60)

    with unit_of_work(db, "workout"):
        get_profile(db, user_id)
        w = Workout(
            user_id=user_id,
            date=local_date(now),
            distance_km=distance,
            duration_sec=data.duration_sec,
            calories=calories,
            route_geojson=json.dumps(to_geojson(points)) if points else None,
            started_at=as_utc(data.started_at) if data.started_at else None,
            finished_at=as_utc(data.finished_at) if data.finished_at else now,
        )
        db.add(w)

        # a reset rewrites today's target, so reconcile before reading it
        reconcile_in_session(db, user_id, now)
        target = ensure_today_target(db, user_id, now)
        outcome: WorkoutOutcome = apply_workout(db, user_id, distance, target, now)
    db.refresh(w)
    logger.info(
        "user %s ran %.2f km (target %.1f): met=%s rp=%d streak=%d",
        user_id, distance, target, outcome.target_met, outcome.rp_earned, outcome.new_streak_value,
    )
    return w, target, outcome
