"""
Attendance API endpoints
"""
import logging
import math
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from campus.core.database import get_db
from campus.core.errors import InvalidCoordinate, InvalidDescriptor, NotFound
from campus.models.domain import AttendanceDecision, GeoPoint
from campus.modules.attendance.cooldown import build_cooldown_tracker
from campus.modules.attendance.service import AttendanceDecider, AttendanceService
from campus.modules.directory.service import DirectoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])

# Shared for the process lifetime; the cooldown map resets on restart
_decider = AttendanceDecider()
_cooldown = build_cooldown_tracker()


def get_decider() -> AttendanceDecider:
    return _decider


def get_cooldown():
    return _cooldown


# Request / response models
class LocationFix(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = Field(None, ge=0)

    def to_point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude, self.accuracy)


class RecognizeRequest(LocationFix):
    class_code: str
    descriptor: List[float]


class ManualMarkRequest(LocationFix):
    class_code: str
    user_id: int


class ValidateLocationRequest(LocationFix):
    class_code: str


class DecisionResponse(BaseModel):
    outcome: str
    reason: str
    user_id: Optional[int] = None
    name: Optional[str] = None
    distance: Optional[int] = None
    radius: Optional[float] = None
    confidence: Optional[float] = None
    margin: Optional[float] = None
    remaining_seconds: Optional[int] = None
    status: Optional[str] = None
    record_id: Optional[int] = None


class RecordResponse(BaseModel):
    id: int
    user_id: int
    class_id: int
    date: date
    time_in: datetime
    time_out: Optional[datetime] = None
    distance_meters: Optional[float] = None
    location_verified: bool
    confidence: Optional[float] = None
    status: str

    class Config:
        from_attributes = True


def _get_class(directory: DirectoryService, code: str):
    try:
        return directory.get_class_by_code(code)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


def _respond(decision: AttendanceDecision, db: Session, classroom, point: GeoPoint, cooldown) -> DecisionResponse:
    """
    Persist accepted decisions and shape the API response.

    When an accepted mark cannot be stored its cooldown is released, so the
    student can retry on the next tick instead of waiting out the window.
    """
    response = DecisionResponse(
        outcome=decision.outcome.value,
        reason=decision.reason,
        user_id=int(decision.identity.id) if decision.identity else None,
        name=decision.identity.name if decision.identity else None,
        distance=round(decision.distance) if decision.distance is not None else None,
        radius=decision.radius,
        confidence=decision.confidence,
        margin=decision.margin,
        remaining_seconds=(
            math.ceil(decision.remaining_seconds) if decision.remaining_seconds is not None else None
        ),
    )

    if decision.accepted:
        try:
            result = AttendanceService(db).record(decision, classroom.id, point)
        except Exception as e:
            logger.error(f"Failed to record attendance for {decision.identity.name}: {e}", exc_info=True)
            cooldown.release(decision.identity.id)
            raise HTTPException(status_code=500, detail="Failed to record attendance")
        response.status = result.status.value
        response.record_id = result.record_id

    return response


@router.post("/recognize", response_model=DecisionResponse)
def recognize(
    request: RecognizeRequest,
    db: Session = Depends(get_db),
    decider: AttendanceDecider = Depends(get_decider),
    cooldown=Depends(get_cooldown),
):
    """
    Identify a face among the students of a class and mark attendance
    when the live location is inside the class geofence.
    """
    directory = DirectoryService(db)
    classroom = _get_class(directory, request.class_code)
    point = request.to_point()

    try:
        decision = decider.decide(
            probe=request.descriptor,
            current=point,
            class_location=directory.class_location(classroom),
            directory=directory.identities(class_id=classroom.id),
            cooldown=cooldown,
        )
    except InvalidDescriptor as e:
        raise HTTPException(status_code=400, detail=f"Unusable face descriptor: {e}")
    except InvalidCoordinate as e:
        raise HTTPException(status_code=400, detail=f"Location unavailable: {e}")

    return _respond(decision, db, classroom, point, cooldown)


@router.post("/mark", response_model=DecisionResponse)
def mark_manually(
    request: ManualMarkRequest,
    db: Session = Depends(get_db),
    decider: AttendanceDecider = Depends(get_decider),
    cooldown=Depends(get_cooldown),
):
    """Manual fallback after a face was not recognized: location and cooldown only"""
    directory = DirectoryService(db)
    classroom = _get_class(directory, request.class_code)

    try:
        user = directory.get_user(request.user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not directory.is_enrolled(classroom.id, user.id):
        raise HTTPException(status_code=404, detail="Class not found or you are not enrolled")

    point = request.to_point()
    try:
        decision = decider.decide_for_identity(
            identity=directory.to_identity(user),
            current=point,
            class_location=directory.class_location(classroom),
            cooldown=cooldown,
        )
    except InvalidCoordinate as e:
        raise HTTPException(status_code=400, detail=f"Location unavailable: {e}")

    return _respond(decision, db, classroom, point, cooldown)


@router.post("/validate-location")
def validate_location(
    request: ValidateLocationRequest,
    db: Session = Depends(get_db),
    decider: AttendanceDecider = Depends(get_decider),
):
    """Check a location fix against a class geofence without marking attendance"""
    directory = DirectoryService(db)
    classroom = _get_class(directory, request.class_code)

    try:
        result = decider.geofence.is_within_radius(request.to_point(), directory.class_location(classroom))
    except InvalidCoordinate as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "is_within_radius": result.verified,
        "distance": round(result.distance),
        "radius": result.radius,
        "class": classroom.to_dict()
    }


@router.get("/records", response_model=List[RecordResponse])
def get_records(
    day: Optional[date] = Query(None, alias="date"),
    user_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Attendance records, optionally filtered by date, user and class"""
    return AttendanceService(db).records(on=day, user_id=user_id, class_id=class_id)
