from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import at
from runstreak.errors import InsufficientBalance, NotFound, WeeklyLimitExceeded
from runstreak.models import Profile, ShopItem
from runstreak.shop import (
    consume_skip_cards, list_available, list_items, purchase_skip_card, weekly_purchase_count,
)
from runstreak.utils_time import week_bucket

MONDAY = date(2026, 3, 9)
NOW = at(MONDAY)


def _fund(db, user, rp):
    db.get(Profile, user).rp_balance = rp
    db.commit()


def test_list_items_cheapest_first(db) -> None:
    db.add_all([
        ShopItem(name="Streak Freeze", type="freeze", rp_cost=200),
        ShopItem(name="Skip Day Card", type="skip_day", rp_cost=50),
    ])
    db.commit()
    assert [i.rp_cost for i in list_items(db)] == [50, 200]


def test_purchase_debits_balance_and_expires_in_a_day(db, user, skip_item) -> None:
    _fund(db, user, 120)
    card = purchase_skip_card(db, user, skip_item.id, now=NOW)

    assert db.get(Profile, user).rp_balance == 70
    assert card.used_at is None
    assert card.week_of_year == 202611
    assert [c.id for c in list_available(db, user, now=NOW)] == [card.id]
    assert list_available(db, user, now=NOW + timedelta(hours=25)) == []


def test_purchase_with_explicit_cost(db, user, skip_item) -> None:
    _fund(db, user, 30)
    purchase_skip_card(db, user, skip_item.id, cost_units=30, now=NOW)
    assert db.get(Profile, user).rp_balance == 0


def test_purchase_rejects_short_balance(db, user, skip_item) -> None:
    _fund(db, user, 49)
    with pytest.raises(InsufficientBalance):
        purchase_skip_card(db, user, skip_item.id, now=NOW)
    assert db.get(Profile, user).rp_balance == 49
    assert weekly_purchase_count(db, user, skip_item.id, now=NOW) == 0


def test_purchase_unknown_item(db, user) -> None:
    with pytest.raises(NotFound):
        purchase_skip_card(db, user, 999, now=NOW)


def test_third_card_in_a_week_is_refused(db, user, skip_item) -> None:
    _fund(db, user, 500)
    purchase_skip_card(db, user, skip_item.id, now=NOW)
    purchase_skip_card(db, user, skip_item.id, now=NOW + timedelta(days=2))
    with pytest.raises(WeeklyLimitExceeded):
        purchase_skip_card(db, user, skip_item.id, now=NOW + timedelta(days=4))
    assert db.get(Profile, user).rp_balance == 400

    # a new ISO week opens the cap again
    purchase_skip_card(db, user, skip_item.id, now=NOW + timedelta(days=7))
    assert db.get(Profile, user).rp_balance == 350


def test_used_cards_still_count_toward_the_cap(db, user, skip_item) -> None:
    _fund(db, user, 500)
    purchase_skip_card(db, user, skip_item.id, now=NOW)
    purchase_skip_card(db, user, skip_item.id, now=NOW)
    assert consume_skip_cards(db, user, 5, NOW) == 2
    db.commit()
    assert list_available(db, user, now=NOW) == []
    with pytest.raises(WeeklyLimitExceeded):
        purchase_skip_card(db, user, skip_item.id, now=NOW)


def test_consume_takes_soonest_expiring_first(db, user, skip_item) -> None:
    _fund(db, user, 500)
    early = purchase_skip_card(db, user, skip_item.id, now=NOW)
    late = purchase_skip_card(db, user, skip_item.id, now=NOW + timedelta(hours=6))

    assert consume_skip_cards(db, user, 1, NOW + timedelta(hours=7)) == 1
    db.commit()
    db.refresh(early)
    db.refresh(late)
    assert early.used_at is not None
    assert late.used_at is None
    assert consume_skip_cards(db, user, 0, NOW) == 0


def test_week_bucket_uses_iso_year() -> None:
    assert week_bucket(at(date(2026, 3, 9))) == 202611
    # Friday 1 Jan 2027 still belongs to ISO week 53 of 2026
    assert week_bucket(at(date(2027, 1, 1))) == 202653
    assert week_bucket(at(date(2027, 1, 4))) == 202701
