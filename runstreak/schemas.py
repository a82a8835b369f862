from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

class RoutePointIn(BaseModel):
    latitude: float
    longitude: float
    altitude: float | None = None
    timestamp: float | None = None
    speed: float | None = None

class WorkoutIn(BaseModel):
    # omitted distance is measured from the route
    distance_km: float | None = Field(default=None, ge=0)
    duration_sec: int = Field(default=0, ge=0)
    route: list[RoutePointIn] = Field(default_factory=list)
    calories: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

class StreakOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    current_streak: int
    longest_streak: int
    penalty_km: float
    last_run_date: date | None
    updated_at: datetime
    state: str

class TargetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    effective_date: date
    target_km: float

class ShopItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    type: str
    rp_cost: int
    description: str | None = None

class PurchaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    item_id: int
    expires_at: datetime
    used_at: datetime | None
    week_of_year: int

class WorkoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: str
    date: date
    distance_km: float
    duration_sec: int
    calories: int | None = None
    route_geojson: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    username: str | None = None

class FriendRequestIn(BaseModel):
    addressee_id: str = Field(min_length=1)

class FriendshipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    requester_id: str
    addressee_id: str
    status: str
    created_at: datetime
