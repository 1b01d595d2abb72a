"""Tourist profile API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from safetrail.core.alert_policies import STAFF_ROOM
from safetrail.core.deps import Principal, get_current_user, require_staff, require_tourist
from safetrail.core.errors import ForbiddenError
from safetrail.core.fanout import fanout
from safetrail.db.session import get_db
from safetrail.models.user import User
from safetrail.schemas.alert import AlertResponse, build_alert_response
from safetrail.schemas.device import DeviceResponse
from safetrail.schemas.tourist import (
    EmergencyRequest,
    LocationHistoryItem,
    LocationUpdate,
    NearbyTouristResponse,
    TouristProfileCreate,
    TouristProfileUpdate,
    TouristResponse,
    TouristStatusUpdate,
)
from safetrail.services.alert_service import list_tourist_alerts
from safetrail.services.device_service import list_devices
from safetrail.services.geo_service import find_nearby_tourists
from safetrail.services.tourist_service import (
    create_profile,
    deactivate_tourist,
    get_my_profile,
    get_tourist,
    list_tourists,
    location_history,
    trigger_emergency,
    update_location,
    update_profile,
    update_tourist_status,
)

router = APIRouter(prefix="/tourists", tags=["tourists"])


# ---- Current tourist ----


@router.post("/me", response_model=TouristResponse, status_code=status.HTTP_201_CREATED)
def setup_profile(
    data: TouristProfileCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_tourist),
):
    """Set up the tourist profile for the current user."""
    return create_profile(db, current_user, data)


@router.get("/me", response_model=TouristResponse)
def my_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_my_profile(db, current_user)


@router.put("/me", response_model=TouristResponse)
def update_my_profile(
    data: TouristProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_tourist),
):
    """Update name / phone on the current profile."""
    tourist = get_my_profile(db, current_user)
    return update_profile(db, tourist, data)


@router.post("/me/location", response_model=TouristResponse)
def update_my_location(
    data: LocationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_tourist),
):
    """Update current location; the previous one moves to history."""
    tourist = get_my_profile(db, current_user)
    tourist = update_location(db, tourist, data.longitude, data.latitude, data.address, data.accuracy)
    fanout.publish(
        STAFF_ROOM,
        "tourist.location",
        {
            "tourist_id": tourist.id,
            "longitude": tourist.longitude,
            "latitude": tourist.latitude,
            "address": tourist.address,
            "timestamp": tourist.location_updated_at,
        },
    )
    return tourist


@router.get("/me/location/history", response_model=list[LocationHistoryItem])
def my_location_history(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tourist = get_my_profile(db, current_user)
    return location_history(db, tourist.id, limit)


@router.get("/me/devices", response_model=list[DeviceResponse])
def my_devices(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tourist = get_my_profile(db, current_user)
    return list_devices(db, tourist_id=tourist.id)


@router.get("/me/alerts", response_model=list[AlertResponse])
def my_alerts(
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current tourist's alerts, newest first."""
    tourist = get_my_profile(db, current_user)
    return [build_alert_response(a) for a in list_tourist_alerts(db, tourist.id, limit)]


@router.post("/me/emergency", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
def emergency(
    data: EmergencyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_tourist),
):
    """Trigger a manual emergency alert at the last known location."""
    alert = trigger_emergency(db, current_user, data.type, data.description)
    return build_alert_response(alert)


# ---- Staff ----


@router.get("", response_model=list[TouristResponse])
def list_all(
    status_filter: str | None = Query(default=None, alias="status"),
    risk_level: str | None = None,
    search: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """List tourists. Staff only."""
    return list_tourists(db, status=status_filter, risk_level=risk_level, search=search, limit=limit, offset=offset)


@router.get("/nearby", response_model=list[NearbyTouristResponse])
def nearby(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    max_distance: float = Query(default=1000, gt=0, le=100_000),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Tourists within max_distance meters of a point. Staff only."""
    return [
        NearbyTouristResponse(tourist=TouristResponse.model_validate(n.tourist), distance_m=n.distance_m)
        for n in find_nearby_tourists(db, latitude, longitude, max_distance)
    ]


@router.get("/{tourist_id}", response_model=TouristResponse)
def get_one(
    tourist_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get a tourist. Staff, or the tourist themselves."""
    tourist = get_tourist(db, tourist_id)
    if not Principal.from_user(current_user).is_privileged and tourist.user_id != current_user.id:
        raise ForbiddenError("Access denied to this tourist", tourist_id=tourist_id)
    return tourist


@router.put("/{tourist_id}/status", response_model=TouristResponse)
def set_status(
    tourist_id: int,
    data: TouristStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Change status / risk level. Safety score is recomputed. Staff only."""
    return update_tourist_status(db, tourist_id, data.status, data.risk_level)


@router.delete("/{tourist_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate(
    tourist_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Deactivate a tourist. Staff only."""
    deactivate_tourist(db, tourist_id)
