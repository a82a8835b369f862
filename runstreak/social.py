import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from .db import unit_of_work
from .errors import FriendRequestExists, InvalidRequest, NotFound
from .models import Friendship, Profile, Workout
from .profiles import get_profile
from .streaks import get_streak
from .utils_time import resolve_now

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"

@dataclass
class ProfileSummary:
    id: str
    username: str | None
    rp_balance: int
    total_workouts: int
    total_distance_km: float
    current_streak: int
    longest_streak: int

def _between(a: str, b: str):
    return or_(
        and_(Friendship.requester_id == a, Friendship.addressee_id == b),
        and_(Friendship.requester_id == b, Friendship.addressee_id == a),
    )

def search_profiles(db: Session, user_id: str, text: str, limit: int = 20) -> list[Profile]:
    text = (text or "").strip()
    if not text:
        return []
    return (
        db.query(Profile)
        .filter(Profile.username.ilike(f"%{text}%"), Profile.id != user_id)
        .order_by(Profile.username.asc())
        .limit(limit)
        .all()
    )

def send_friend_request(db: Session, user_id: str, addressee_id: str, now: datetime | None = None) -> Friendship:
    now = resolve_now(now)
    if addressee_id == user_id:
        raise InvalidRequest("You cannot befriend yourself")
    with unit_of_work(db, "friend request"):
        if not db.get(Profile, addressee_id):
            raise NotFound(f"user {addressee_id} not found")
        if db.query(Friendship.id).filter(_between(user_id, addressee_id)).first():
            raise FriendRequestExists("Friend request already exists")
        get_profile(db, user_id)
        f = Friendship(requester_id=user_id, addressee_id=addressee_id, status=PENDING, created_at=now)
        db.add(f)
    db.refresh(f)
    logger.info("user %s sent a friend request to %s", user_id, addressee_id)
    return f

def _incoming(db: Session, user_id: str, friendship_id: int) -> Friendship:
    f = db.get(Friendship, friendship_id)
    if not f or f.addressee_id != user_id or f.status != PENDING:
        raise NotFound(f"friend request {friendship_id} not found")
    return f

def accept_friend_request(db: Session, user_id: str, friendship_id: int) -> Friendship:
    with unit_of_work(db, "friend request"):
        f = _incoming(db, user_id, friendship_id)
        f.status = ACCEPTED
    db.refresh(f)
    return f

def decline_friend_request(db: Session, user_id: str, friendship_id: int) -> None:
    with unit_of_work(db, "friend request"):
        db.delete(_incoming(db, user_id, friendship_id))

def list_friends(db: Session, user_id: str) -> list[Profile]:
    rows = (
        db.query(Friendship)
        .filter(
            Friendship.status == ACCEPTED,
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
        )
        .all()
    )
    ids = [f.addressee_id if f.requester_id == user_id else f.requester_id for f in rows]
    if not ids:
        return []
    return db.query(Profile).filter(Profile.id.in_(ids)).order_by(Profile.username.asc()).all()

def list_pending_requests(db: Session, user_id: str) -> list[tuple[Friendship, Profile]]:
    return (
        db.query(Friendship, Profile)
        .join(Profile, Profile.id == Friendship.requester_id)
        .filter(Friendship.addressee_id == user_id, Friendship.status == PENDING)
        .order_by(Friendship.created_at.asc())
        .all()
    )

def are_friends(db: Session, a: str, b: str) -> bool:
    return db.query(Friendship.id).filter(_between(a, b), Friendship.status == ACCEPTED).first() is not None

def require_visible(db: Session, viewer_id: str, owner_id: str) -> None:
    # someone else's runs look the same whether they don't exist or aren't shared
    if viewer_id != owner_id and not are_friends(db, viewer_id, owner_id):
        raise NotFound(f"user {owner_id} not found")

def get_workout(db: Session, viewer_id: str, workout_id: int) -> Workout:
    w = db.get(Workout, workout_id)
    if not w:
        raise NotFound(f"workout {workout_id} not found")
    try:
        require_visible(db, viewer_id, w.user_id)
    except NotFound:
        raise NotFound(f"workout {workout_id} not found") from None
    return w

def profile_summary(db: Session, user_id: str) -> ProfileSummary:
    with unit_of_work(db, "profile"):
        profile = get_profile(db, user_id)
        streak = get_streak(db, user_id)
    count, total = (
        db.query(func.count(Workout.id), func.coalesce(func.sum(Workout.distance_km), 0.0))
        .filter(Workout.user_id == user_id)
        .one()
    )
    return ProfileSummary(
        id=profile.id,
        username=profile.username,
        rp_balance=profile.rp_balance or 0,
        total_workouts=count,
        total_distance_km=float(total or 0),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
    )
