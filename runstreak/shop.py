import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from .config import settings
from .db import unit_of_work
from .errors import InsufficientBalance, NotFound, WeeklyLimitExceeded
from .models import Purchase, ShopItem
from .profiles import get_profile
from .utils_time import resolve_now, week_bucket

logger = logging.getLogger(__name__)

SKIP_DAY = "skip_day"

def list_items(db: Session) -> list[ShopItem]:
    return db.query(ShopItem).order_by(ShopItem.rp_cost.asc(), ShopItem.id.asc()).all()

def weekly_purchase_count(db: Session, user_id: str, item_id: int, now: datetime | None = None) -> int:
    bucket = week_bucket(resolve_now(now))
    return (
        db.query(func.count(Purchase.id))
        .filter(
            Purchase.user_id == user_id,
            Purchase.item_id == item_id,
            Purchase.week_of_year == bucket,
        )
        .scalar()
    ) or 0

def _available_query(db: Session, user_id: str, now: datetime):
    return (
        db.query(Purchase)
        .join(ShopItem, Purchase.item_id == ShopItem.id)
        .filter(
            Purchase.user_id == user_id,
            ShopItem.type == SKIP_DAY,
            Purchase.used_at.is_(None),
            Purchase.expires_at > now,
        )
    )

def list_available(db: Session, user_id: str, now: datetime | None = None) -> list[Purchase]:
    now = resolve_now(now)
    return _available_query(db, user_id, now).order_by(Purchase.expires_at.asc()).all()

def purchase_skip_card(
    db: Session,
    user_id: str,
    item_id: int,
    cost_units: int | None = None,
    now: datetime | None = None,
) -> Purchase:
    now = resolve_now(now)
    with unit_of_work(db, "purchase"):
        item = db.get(ShopItem, item_id)
        if not item:
            raise NotFound(f"shop item {item_id} not found")
        cost = item.rp_cost if cost_units is None else cost_units

        profile = get_profile(db, user_id)
        if (profile.rp_balance or 0) < cost:
            raise InsufficientBalance("Not enough RP")

        if weekly_purchase_count(db, user_id, item_id, now) >= settings.SKIP_CARD_WEEKLY_LIMIT:
            raise WeeklyLimitExceeded(f"Maximum {settings.SKIP_CARD_WEEKLY_LIMIT} skip cards per week")

        purchase = Purchase(
            user_id=user_id,
            item_id=item_id,
            expires_at=now + timedelta(hours=settings.SKIP_CARD_TTL_HOURS),
            used_at=None,
            week_of_year=week_bucket(now),
            created_at=now,
        )
        db.add(purchase)
        profile.rp_balance = profile.rp_balance - cost
        # always bumps the profile version, so the balance and weekly checks
        # above only hold if no other purchase committed in between
        flag_modified(profile, "rp_balance")
    db.refresh(purchase)
    logger.info("user %s bought item %s for %d RP (balance %d)", user_id, item_id, cost, profile.rp_balance)
    return purchase

def consume_skip_cards(db: Session, user_id: str, wanted: int, now: datetime) -> int:
    """
    Mark up to `wanted` available skip cards as used, soonest to expire first.
    Returns how many were consumed. Only touches the session.
    """
    if wanted <= 0:
        return 0
    cards = _available_query(db, user_id, now).order_by(Purchase.expires_at.asc()).limit(wanted).all()
    for card in cards:
        card.used_at = now
    if cards:
        db.flush()
        logger.info("user %s: used %d skip card(s)", user_id, len(cards))
    return len(cards)
