"""
User Model - Store student information and enrolled face descriptors
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from campus.models.base import Base


class User(Base):
    """
    Represents a student (or teacher) registered in the system.
    Face descriptors live in UserFace, one row per captured sample.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    student_id = Column(String(50), nullable=False, unique=True)
    department = Column(String(100), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True)

    # Relationships
    faces = relationship("UserFace", back_populates="user", cascade="all, delete-orphan")
    enrollments = relationship("ClassEnrollment", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', active={self.is_active})>"

    def to_dict(self):
        """Convert to dictionary (exclude face descriptors)"""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'student_id': self.student_id,
            'department': self.department,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'is_active': self.is_active,
            'face_count': len(self.faces),
        }


class UserFace(Base):
    """One enrollment sample: a face descriptor stored as a JSON list of floats"""
    __tablename__ = 'user_faces'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # 128 floats from the upstream embedding model; may be NULL for image-only samples
    descriptor = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="faces")

    def __repr__(self):
        return f"<UserFace(id={self.id}, user_id={self.user_id})>"
