import json
import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0
DEFAULT_WEIGHT_KG = 70

@dataclass
class RoutePoint:
    latitude: float
    longitude: float
    altitude: float | None = None
    timestamp: float | None = None
    speed: float | None = None

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

def total_distance_km(points: list[RoutePoint]) -> float:
    total = 0.0
    for prev, cur in zip(points, points[1:]):
        total += haversine_km(prev.latitude, prev.longitude, cur.latitude, cur.longitude)
    return total

def to_geojson(points: list[RoutePoint]) -> dict:
    return {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[p.longitude, p.latitude, p.altitude or 0] for p in points],
        },
        "properties": {
            "timestamps": [p.timestamp for p in points],
            "speeds": [p.speed for p in points],
        },
    }

def from_geojson(geojson) -> list[RoutePoint]:
    """Accepts a dict or its JSON text; anything without coordinates is an empty route."""
    if isinstance(geojson, str):
        geojson = json.loads(geojson)
    coords = ((geojson or {}).get("geometry") or {}).get("coordinates") or []
    return [RoutePoint(latitude=c[1], longitude=c[0], altitude=c[2] if len(c) > 2 else None) for c in coords]

def estimate_calories(distance_km: float, duration_min: float, weight_kg: float = DEFAULT_WEIGHT_KG) -> int:
    if duration_min <= 0:
        return 0
    speed_kmh = distance_km / duration_min * 60
    # MET: running ~10, jogging ~6.5, walking ~3.5
    if speed_kmh > 8:
        met = 10
    elif speed_kmh > 5:
        met = 6.5
    else:
        met = 3.5
    return round(met * weight_kg * duration_min / 60)
