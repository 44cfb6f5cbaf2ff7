"""
Attendance Module - decides and records attendance events

Decision order for each recognition tick:
- Face must match an enrolled identity (cheapest and most common rejection)
- Live location must be inside the class geofence
- Identity must not be in cooldown (checked last so the remaining time
  is only reported for otherwise valid events)
"""
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, date
from typing import Iterable, Optional, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus.core.errors import AttendanceError
from campus.models.attendance import AttendanceRecord, RecordStatus
from campus.models.domain import (
    AttendanceDecision, ClassLocation, DecisionOutcome, EnrolledIdentity, GeoPoint, MatchResult,
)
from campus.modules.face_matching.service import FaceMatcher
from campus.modules.geofence.service import GeofenceValidator

logger = logging.getLogger(__name__)


class AttendanceDecider:
    """
    Composes the face matcher, the geofence validator and a cooldown store.

    Holds no state of its own; the cooldown store passed to each call is
    the only thing mutated, and only for accepted decisions.
    """

    def __init__(self, matcher: Optional[FaceMatcher] = None, geofence: Optional[GeofenceValidator] = None):
        self.matcher = matcher or FaceMatcher()
        self.geofence = geofence or GeofenceValidator()

    def decide(
        self,
        probe,
        current: GeoPoint,
        class_location: ClassLocation,
        directory: Iterable[EnrolledIdentity],
        cooldown,
        now: Optional[float] = None,
    ) -> AttendanceDecision:
        """
        Evaluate one recognition attempt.

        Raises:
            InvalidDescriptor: probe is malformed
            InvalidCoordinate: current location or class anchor out of range
        """
        now = time.time() if now is None else now
        directory = list(directory)

        match = self.matcher.match(probe, directory)
        if not match.matched:
            return self._face_rejected(match, directory, now)

        return self.decide_for_identity(match.identity, current, class_location, cooldown, now=now, match=match)

    def decide_for_identity(
        self,
        identity: EnrolledIdentity,
        current: GeoPoint,
        class_location: ClassLocation,
        cooldown,
        now: Optional[float] = None,
        match: Optional[MatchResult] = None,
    ) -> AttendanceDecision:
        """
        Location and cooldown stages for an already identified person.

        Also used for manual selection after the face stage rejected.
        """
        now = time.time() if now is None else now
        scores = {}
        if match is not None:
            scores = dict(confidence=match.confidence, margin=match.margin, face_distance=match.distance)

        location = self.geofence.is_within_radius(current, class_location)
        place = class_location.name or f"class {class_location.id}"

        if not location.verified:
            logger.info(
                f"📍 {identity.name} outside geofence of {place}: "
                f"{location.distance:.1f}m > {location.radius:.0f}m"
            )
            return AttendanceDecision(
                outcome=DecisionOutcome.rejected_location,
                reason=(
                    f"You must be within {location.radius:g} meters of {place} to mark attendance. "
                    f"Current distance: {round(location.distance)} meters."
                ),
                identity=identity,
                distance=location.distance,
                radius=location.radius,
                decided_at=now,
                **scores,
            )

        check = cooldown.check_and_mark(identity.id, now)
        if not check.allowed:
            logger.debug(f"{identity.name} in cooldown, {check.remaining_seconds:.1f}s remaining")
            return AttendanceDecision(
                outcome=DecisionOutcome.rejected_cooldown,
                reason=(
                    f"{identity.name} - Please wait {math.ceil(check.remaining_seconds)} seconds "
                    f"before marking attendance again"
                ),
                identity=identity,
                distance=location.distance,
                radius=location.radius,
                remaining_seconds=check.remaining_seconds,
                decided_at=now,
                **scores,
            )

        logger.info(f"✅ Attendance accepted for {identity.name} at {place} ({location.distance:.1f}m)")
        return AttendanceDecision(
            outcome=DecisionOutcome.accepted,
            reason=f"Attendance accepted for {identity.name}",
            identity=identity,
            distance=location.distance,
            radius=location.radius,
            decided_at=now,
            **scores,
        )

    @staticmethod
    def _face_rejected(match: MatchResult, directory: List[EnrolledIdentity], now: float) -> AttendanceDecision:
        if match.candidate is None:
            reason = "No enrolled faces to compare against" if not directory else "No usable enrolled face descriptors"
        else:
            reason = "Face not recognized, please select your name manually"

        return AttendanceDecision(
            outcome=DecisionOutcome.rejected_face,
            reason=reason,
            confidence=match.confidence if match.candidate else None,
            margin=match.margin if match.candidate else None,
            face_distance=match.distance,
            decided_at=now,
        )


@dataclass(frozen=True)
class RecordResult:
    status: RecordStatus
    record_id: int


class AttendanceService:
    """
    Persists accepted decisions as daily attendance records.

    One record per (user, class, date): the first mark writes time-in,
    the second writes time-out, later marks change nothing.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        decision: AttendanceDecision,
        class_id: int,
        point: Optional[GeoPoint] = None,
        at: Optional[datetime] = None,
    ) -> RecordResult:
        if not decision.accepted or decision.identity is None:
            raise AttendanceError(f"Only accepted decisions can be recorded (got {decision.outcome.value})")

        at = at or datetime.utcnow()
        user_id = int(decision.identity.id)

        try:
            return self._upsert(decision, user_id, class_id, point, at)
        except IntegrityError:
            # Another worker inserted today's row first; retry as an update
            self.db.rollback()
            return self._upsert(decision, user_id, class_id, point, at)
        except Exception as e:
            logger.error(f"Failed to record attendance: {e}", exc_info=True)
            self.db.rollback()
            raise

    def _upsert(self, decision, user_id, class_id, point, at) -> RecordResult:
        record = self.db.query(AttendanceRecord)\
            .filter(AttendanceRecord.user_id == user_id)\
            .filter(AttendanceRecord.class_id == class_id)\
            .filter(AttendanceRecord.date == at.date())\
            .first()

        if record is None:
            record = AttendanceRecord(
                user_id=user_id,
                class_id=class_id,
                date=at.date(),
                time_in=at,
                confidence=decision.confidence,
            )
            status = RecordStatus.time_in
            self.db.add(record)
        elif record.time_out is None:
            record.time_out = at
            status = RecordStatus.time_out
        else:
            logger.debug(f"User {user_id} already has time-in and time-out for class {class_id}")
            return RecordResult(status=RecordStatus.already_marked, record_id=record.id)

        if point is not None:
            record.latitude = point.latitude
            record.longitude = point.longitude
        record.distance_meters = decision.distance
        record.location_verified = True
        self.db.commit()

        logger.info(f"📝 {status.value} for {decision.identity.name} (record {record.id})")
        return RecordResult(status=status, record_id=record.id)

    def records(
        self,
        on: Optional[date] = None,
        user_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> list:
        """Attendance records, newest first"""
        query = self.db.query(AttendanceRecord)
        if class_id is not None:
            query = query.filter(AttendanceRecord.class_id == class_id)
        if user_id is not None:
            query = query.filter(AttendanceRecord.user_id == user_id)
        if on is not None:
            query = query.filter(AttendanceRecord.date == on)

        return query\
            .order_by(AttendanceRecord.date.desc(), AttendanceRecord.time_in.desc())\
            .all()
