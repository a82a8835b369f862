import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("APP_TZ", "Asia/Ho_Chi_Minh")

from datetime import date, datetime, time, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from runstreak.models import Base, DailyTarget, Profile, ShopItem, Streak
from runstreak.utils_time import TZ


def at(d: date, hour: int = 9) -> datetime:
    """The UTC instant of `hour` o'clock local time on day d; rows are stored in UTC."""
    return datetime.combine(d, time(hour, 0)).replace(tzinfo=TZ).astimezone(timezone.utc)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine) -> Session:
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    yield session
    session.close()


@pytest.fixture
def file_engine(tmp_path):
    # a real file, so two sessions get two connections and can race
    eng = create_engine(f"sqlite:///{tmp_path / 'runs.db'}", future=True)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def two_sessions(file_engine):
    maker = sessionmaker(bind=file_engine, autoflush=False, autocommit=False, future=True)
    a, b = maker(), maker()
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def user(db) -> str:
    db.add(Profile(id="runner-1", username="runner", rp_balance=0))
    db.commit()
    return "runner-1"


@pytest.fixture
def skip_item(db) -> ShopItem:
    item = ShopItem(name="Skip Day Card", type="skip_day", rp_cost=50)
    db.add(item)
    db.commit()
    return item


def make_streak(db, user_id, *, current=0, longest=None, penalty=0.0, last_run=None, updated=None, last_met=None):
    streak = Streak(
        user_id=user_id,
        current_streak=current,
        longest_streak=current if longest is None else longest,
        penalty_km=penalty,
        last_run_date=last_run,
        last_met_date=last_met,
        updated_at=updated or at(last_run or date(2026, 1, 1), 20),
    )
    db.add(streak)
    db.commit()
    return streak


def add_target(db, user_id, d, km):
    db.add(DailyTarget(user_id=user_id, effective_date=d, target_km=km))
    db.commit()
