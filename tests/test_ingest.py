from __future__ import annotations

import json
from datetime import date, timedelta

import pytest

from conftest import add_target, at, make_streak
from runstreak.ingest import record_workout
from runstreak.models import Profile, Streak, Workout
from runstreak.route import RoutePoint, haversine_km
from runstreak.schemas import RoutePointIn, WorkoutIn
from runstreak.tracking import LocationFeed, RouteRecorder

TODAY = date(2026, 3, 10)
NOW = at(TODAY, 7)


def test_record_workout_saves_run_and_scores_it(db, user) -> None:
    make_streak(db, user, current=2, last_run=TODAY - timedelta(days=1))
    add_target(db, user, TODAY, 1.0)

    w, target, outcome = record_workout(
        db, user, WorkoutIn(distance_km=1.75, duration_sec=600, started_at=NOW - timedelta(minutes=10)), now=NOW,
    )

    assert w.id is not None
    assert w.date == TODAY
    assert w.route_geojson is None
    assert w.calories == 117  # 10.5 km/h for 10 minutes
    assert target == 1.0
    assert outcome.target_met and outcome.rp_earned == 7 and outcome.new_streak_value == 3
    assert db.get(Profile, user).rp_balance == 7
    assert db.query(Workout).count() == 1


def test_record_workout_measures_distance_from_route(db, user) -> None:
    route = [RoutePointIn(latitude=10.0, longitude=106.0), RoutePointIn(latitude=10.0, longitude=106.02)]
    w, target, outcome = record_workout(db, user, WorkoutIn(duration_sec=900, route=route), now=NOW)

    assert w.distance_km == pytest.approx(haversine_km(10.0, 106.0, 10.0, 106.02))
    assert json.loads(w.route_geojson)["geometry"]["type"] == "LineString"
    assert target == 1.0
    assert outcome.target_met is True
    assert outcome.new_streak_value == 1


def test_record_workout_uses_reset_target_after_long_gap(db, user) -> None:
    make_streak(db, user, current=80, last_run=TODAY - timedelta(days=5))
    add_target(db, user, TODAY, 5.0)

    _, target, outcome = record_workout(db, user, WorkoutIn(distance_km=1.2, duration_sec=500), now=NOW)

    assert target == 1.0
    assert outcome.target_met is True
    assert outcome.rp_earned == 2
    assert db.get(Streak, user).current_streak == 1


def test_recorded_route_is_saved_as_a_workout(db, user) -> None:
    feed = LocationFeed()
    rec = RouteRecorder(feed)
    for lon in (106.0, 106.005, 106.01):
        feed.publish(RoutePoint(10.0, lon, timestamp=1.0))
    rec.stop()

    w, target, outcome = record_workout(db, user, rec.to_workout_in(duration_sec=420), now=NOW)

    assert w.distance_km == pytest.approx(rec.distance_km)
    assert json.loads(w.route_geojson)["geometry"]["coordinates"][0] == [106.0, 10.0, 0]
    assert outcome.target_met and outcome.new_streak_value == 1
