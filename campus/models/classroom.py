"""
Class models - teacher-defined classes with a geofenced location
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from campus.models.base import Base


class ClassRoom(Base):
    """A class students join by code; attendance must be marked near its location"""
    __tablename__ = 'classes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(20), nullable=False, unique=True, index=True)  # Always upper-case
    description = Column(String(500), nullable=True)
    teacher_name = Column(String(100), nullable=True)

    # Geofence
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    attendance_radius = Column(Float, nullable=False, default=30.0)  # Meters

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    enrollments = relationship("ClassEnrollment", back_populates="classroom", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ClassRoom(id={self.id}, code='{self.code}', radius={self.attendance_radius})>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'teacher_name': self.teacher_name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'attendance_radius': self.attendance_radius,
        }


class ClassEnrollment(Base):
    """Student membership in a class"""
    __tablename__ = 'class_enrollments'
    __table_args__ = (UniqueConstraint('class_id', 'user_id', name='uq_enrollment'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey('classes.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    enrolled_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    classroom = relationship("ClassRoom", back_populates="enrollments")
    user = relationship("User", back_populates="enrollments")

    def __repr__(self):
        return f"<ClassEnrollment(class_id={self.class_id}, user_id={self.user_id})>"
