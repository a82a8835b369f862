import logging
import time
from typing import Annotated

from fastapi import FastAPI, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .db import engine, get_session, unit_of_work
from .errors import RunStreakError
from .history import build_month_calendar, list_month_workouts
from .ingest import record_workout
from .logs import setup_logging
from .schemas import (
    FriendRequestIn, FriendshipOut, ProfileOut, PurchaseOut, ShopItemOut,
    StreakOut, TargetOut, WorkoutIn, WorkoutOut,
)
from .security import require_user
from .shop import list_available, list_items, purchase_skip_card
from .social import (
    accept_friend_request, decline_friend_request, get_workout, list_friends,
    list_pending_requests, profile_summary, require_visible, search_profiles,
    send_friend_request,
)
from .streaks import get_streak, reconcile, streak_state
from .targets import ensure_today_target, get_month_targets, get_today_distance

setup_logging()
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Run Every Day API")

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d",
        request.method, request.url.path, response.status_code,
        extra={"extra_fields": {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round((time.time() - start) * 1000, 2),
        }},
    )
    return response

@app.exception_handler(RunStreakError)
async def runstreak_error_handler(request: Request, exc: RunStreakError):
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": type(exc).__name__})

@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    # reads outside a unit of work; writes are already StorageUnavailable
    logger.error("%s %s storage error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": "storage unavailable", "error": "StorageUnavailable"})

Year = Annotated[int, Query(ge=2000, le=2100)]
Month = Annotated[int, Query(ge=1, le=12)]

def _streak_out(streak) -> dict:
    return {
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "penalty_km": streak.penalty_km,
        "last_run_date": streak.last_run_date,
        "updated_at": streak.updated_at,
        "state": streak_state(streak).value,
    }

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/me/profile")
def my_profile(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return profile_summary(db, user_id)

@app.get("/me/streak", response_model=StreakOut)
def my_streak(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    with unit_of_work(db, "streak record"):
        streak = get_streak(db, user_id)
    return _streak_out(streak)

@app.post("/me/reconcile")
def my_reconcile(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    result = reconcile(db, user_id)
    return {
        "outcome": result.outcome.value,
        "penalty_added_km": result.penalty_added_km,
        "missed_days": result.missed_days,
        "credits_used": result.credits_used,
        "target_km": result.target_km,
        "streak": _streak_out(get_streak(db, user_id)),
    }

@app.get("/me/targets/today")
def my_today_target(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    with unit_of_work(db, "targets"):
        target_km = ensure_today_target(db, user_id)
    return {"target_km": target_km}

@app.get("/me/distance/today")
def my_today_distance(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return {"distance_km": get_today_distance(db, user_id)}

@app.get("/me/targets", response_model=list[TargetOut])
def my_month_targets(
    year: Year, month: Month,
    user_id: str = Depends(require_user), db: Session = Depends(get_session),
):
    return get_month_targets(db, user_id, year, month)

@app.get("/me/calendar")
def my_calendar(
    year: Year, month: Month,
    user_id: str = Depends(require_user), db: Session = Depends(get_session),
):
    return {"year": year, "month": month, "days": build_month_calendar(db, user_id, year, month)}

@app.get("/me/workouts", response_model=list[WorkoutOut])
def my_month_workouts(
    year: Year, month: Month,
    user_id: str = Depends(require_user), db: Session = Depends(get_session),
):
    return list_month_workouts(db, user_id, year, month)

@app.post("/me/workouts")
def my_new_workout(data: WorkoutIn, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    w, target_km, outcome = record_workout(db, user_id, data)
    return {
        "id": w.id,
        "date": w.date,
        "distance_km": w.distance_km,
        "target_km": target_km,
        "target_met": outcome.target_met,
        "rp_earned": outcome.rp_earned,
        "penalty_cleared": outcome.penalty_cleared,
        "new_streak_value": outcome.new_streak_value,
    }

@app.get("/workouts/{workout_id}", response_model=WorkoutOut)
def workout_detail(workout_id: int, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return get_workout(db, user_id, workout_id)

@app.get("/users/{owner_id}/calendar")
def friend_calendar(
    owner_id: str, year: Year, month: Month,
    user_id: str = Depends(require_user), db: Session = Depends(get_session),
):
    require_visible(db, user_id, owner_id)
    days = build_month_calendar(db, owner_id, year, month, include_targets=owner_id == user_id)
    return {"year": year, "month": month, "days": days}

@app.get("/users/{owner_id}/workouts", response_model=list[WorkoutOut])
def friend_workouts(
    owner_id: str, year: Year, month: Month,
    user_id: str = Depends(require_user), db: Session = Depends(get_session),
):
    require_visible(db, user_id, owner_id)
    return list_month_workouts(db, owner_id, year, month)

@app.get("/profiles/search", response_model=list[ProfileOut])
def profile_search(q: str = "", user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return search_profiles(db, user_id, q)

@app.get("/me/friends", response_model=list[ProfileOut])
def my_friends(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return list_friends(db, user_id)

@app.get("/me/friend-requests")
def my_friend_requests(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return [
        {"id": f.id, "requester": {"id": p.id, "username": p.username}, "created_at": f.created_at}
        for f, p in list_pending_requests(db, user_id)
    ]

@app.post("/me/friend-requests", response_model=FriendshipOut)
def new_friend_request(data: FriendRequestIn, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return send_friend_request(db, user_id, data.addressee_id)

@app.post("/me/friend-requests/{friendship_id}/accept", response_model=FriendshipOut)
def accept_request(friendship_id: int, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return accept_friend_request(db, user_id, friendship_id)

@app.delete("/me/friend-requests/{friendship_id}")
def decline_request(friendship_id: int, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    decline_friend_request(db, user_id, friendship_id)
    return {"ok": True}

@app.get("/shop/items", response_model=list[ShopItemOut])
def shop_items(db: Session = Depends(get_session)):
    return list_items(db)

@app.get("/me/skip-cards", response_model=list[PurchaseOut])
def my_skip_cards(user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return list_available(db, user_id)

@app.post("/shop/items/{item_id}/purchase", response_model=PurchaseOut)
def buy_item(item_id: int, user_id: str = Depends(require_user), db: Session = Depends(get_session)):
    return purchase_skip_card(db, user_id, item_id)
