# runstreak/models.py
from datetime import datetime, date
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import (
    String, Integer, Date, DateTime, Text,
    ForeignKey, Float, UniqueConstraint, Index
)

class Base(DeclarativeBase):
    pass

class Profile(Base):
    __tablename__ = "profiles"
    # ids come from the external identity service
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rp_balance: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

class Streak(Base):
    __tablename__ = "streaks"
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    penalty_km: Mapped[float] = mapped_column(Float, default=0.0)
    last_run_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_met_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # UPDATE ... WHERE version = :old, so racing writers fail instead of clobbering
    __mapper_args__ = {"version_id_col": version}

class DailyTarget(Base):
    __tablename__ = "daily_targets"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    effective_date: Mapped[date] = mapped_column(Date)
    target_km: Mapped[float] = mapped_column(Float)

    __table_args__ = (
        UniqueConstraint("user_id", "effective_date", name="uq_target_day"),
    )

class Workout(Base):
    __tablename__ = "workouts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    date: Mapped[date] = mapped_column(Date)
    distance_km: Mapped[float] = mapped_column(Float, default=0.0)
    duration_sec: Mapped[int] = mapped_column(Integer, default=0)
    calories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    route_geojson: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_workouts_user_date", "user_id", "date"),
    )

class ShopItem(Base):
    __tablename__ = "shop_items"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    type: Mapped[str] = mapped_column(String(32))
    rp_cost: Mapped[int] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

class Purchase(Base):
    __tablename__ = "purchases"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("shop_items.id"))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    week_of_year: Mapped[int] = mapped_column(Integer, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

class Friendship(Base):
    __tablename__ = "friendships"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    addressee_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_friendship_pair"),
    )
