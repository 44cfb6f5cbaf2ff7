"""Database models and domain value types"""
from campus.models.base import Base
from campus.models.person import User, UserFace
from campus.models.classroom import ClassRoom, ClassEnrollment
from campus.models.attendance import AttendanceRecord, RecordStatus
from campus.models.domain import (
    GeoPoint, ClassLocation, EnrolledIdentity, MatchResult, GeofenceResult,
    CooldownCheck, DecisionOutcome, AttendanceDecision,
)

__all__ = [
    'Base', 'User', 'UserFace', 'ClassRoom', 'ClassEnrollment', 'AttendanceRecord', 'RecordStatus',
    'GeoPoint', 'ClassLocation', 'EnrolledIdentity', 'MatchResult', 'GeofenceResult',
    'CooldownCheck', 'DecisionOutcome', 'AttendanceDecision',
]
