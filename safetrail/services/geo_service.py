"""Geo helpers and nearby-tourist search."""

import math
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from safetrail.models.tourist import Tourist


@dataclass
class NearbyTourist:
    """Tourist within a search radius, nearest first."""

    tourist: Tourist
    distance_m: float


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two lat/lng points in kilometers."""
    R = 6371.0  # Earth radius in km
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearby_tourists(
    db: Session,
    latitude: float,
    longitude: float,
    max_distance_m: float = 1000,
    limit: int = 50,
) -> list[NearbyTourist]:
    """
    Active tourists with a known location within ``max_distance_m`` meters.

    Tourists without a location are left out.
    """
    result = db.execute(
        select(Tourist).where(
            Tourist.is_active.is_(True),
            Tourist.latitude.is_not(None),
            Tourist.longitude.is_not(None),
        )
    )
    nearby: list[NearbyTourist] = []
    for t in result.scalars().all():
        dist_m = haversine_km(latitude, longitude, t.latitude, t.longitude) * 1000
        if dist_m <= max_distance_m:
            nearby.append(NearbyTourist(tourist=t, distance_m=round(dist_m, 1)))

    nearby.sort(key=lambda n: n.distance_m)
    return nearby[:limit]
