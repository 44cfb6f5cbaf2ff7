"""
Attendance models for tracking daily time-in/time-out per class
"""
from sqlalchemy import Column, Integer, Float, Date, DateTime, Boolean, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from campus.models.base import Base


class RecordStatus(enum.Enum):
    """Result of persisting an accepted attendance decision"""
    time_in = "Time in recorded"
    time_out = "Time out recorded"
    already_marked = "Already marked time out for today"


class AttendanceRecord(Base):
    """One row per (user, class, date); first mark is time-in, second is time-out"""
    __tablename__ = 'attendance_records'
    __table_args__ = (UniqueConstraint('user_id', 'class_id', 'date', name='uq_attendance_day'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey('classes.id'), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    time_in = Column(DateTime, nullable=False)
    time_out = Column(DateTime, nullable=True)  # Null until second mark

    # Location evidence from the latest mark
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    distance_meters = Column(Float, nullable=True)
    location_verified = Column(Boolean, nullable=False, default=False)

    # Face match confidence (null for manual marks)
    confidence = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default='Present')

    user = relationship("User")
    classroom = relationship("ClassRoom")

    def __repr__(self):
        return f"<AttendanceRecord(id={self.id}, user_id={self.user_id}, date={self.date})>"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.user.name if self.user else 'Unknown Student',
            'student_id': self.user.student_id if self.user else None,
            'department': self.user.department if self.user else None,
            'class_id': self.class_id,
            'class_name': self.classroom.name if self.classroom else 'Unknown Class',
            'date': self.date.isoformat(),
            'time_in': self.time_in.isoformat() if self.time_in else None,
            'time_out': self.time_out.isoformat() if self.time_out else None,
            'distance_meters': self.distance_meters,
            'location_verified': self.location_verified,
            'confidence': self.confidence,
            'status': self.status,
        }
