"""
Plain value types passed between the directory, the matcher,
the geofence validator and the attendance orchestrator.
"""
import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class GeoPoint:
    """A live location fix in decimal degrees"""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # Meters, as reported by the device


@dataclass(frozen=True)
class ClassLocation:
    """Anchor point and radius of a class geofence"""
    id: str
    anchor: GeoPoint
    radius: float  # Meters
    name: Optional[str] = None


@dataclass(frozen=True, eq=False)
class EnrolledIdentity:
    """
    A registered person and the descriptors captured at enrollment.

    Descriptors are read-only numpy arrays; the matcher never mutates them.
    """
    id: str
    name: str
    descriptors: Tuple[np.ndarray, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of one matcher call; identity is None when rejected"""
    identity: Optional[EnrolledIdentity]
    confidence: float = 0.0
    margin: float = 0.0
    distance: Optional[float] = None
    candidate: Optional[EnrolledIdentity] = None  # Best-ranked identity, even if rejected

    @property
    def matched(self) -> bool:
        return self.identity is not None


@dataclass(frozen=True)
class GeofenceResult:
    verified: bool
    distance: float
    radius: float


@dataclass(frozen=True)
class CooldownCheck:
    """Result of an atomic cooldown check-and-mark"""
    allowed: bool
    remaining_seconds: float = 0.0


class DecisionOutcome(enum.Enum):
    """Possible outcomes of an attendance evaluation"""
    accepted = "accepted"
    rejected_face = "rejected-face"
    rejected_location = "rejected-location"
    rejected_cooldown = "rejected-cooldown"


@dataclass(frozen=True)
class AttendanceDecision:
    """
    Result of one attendance evaluation. Returned to the caller, which
    decides whether to persist it.
    """
    outcome: DecisionOutcome
    reason: str
    identity: Optional[EnrolledIdentity] = None
    distance: Optional[float] = None          # Meters from class anchor
    radius: Optional[float] = None
    confidence: Optional[float] = None        # Face match confidence
    margin: Optional[float] = None
    face_distance: Optional[float] = None
    remaining_seconds: Optional[float] = None
    decided_at: Optional[float] = None        # Epoch seconds

    @property
    def accepted(self) -> bool:
        return self.outcome is DecisionOutcome.accepted

    def to_dict(self):
        return {
            'outcome': self.outcome.value,
            'reason': self.reason,
            'identity_id': self.identity.id if self.identity else None,
            'identity_name': self.identity.name if self.identity else None,
            'distance': self.distance,
            'radius': self.radius,
            'confidence': self.confidence,
            'margin': self.margin,
            'face_distance': self.face_distance,
            'remaining_seconds': self.remaining_seconds,
        }
