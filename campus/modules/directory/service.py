"""
Directory Service - registered users, their face descriptors, and classes

Serves read-only snapshots (EnrolledIdentity, ClassLocation) to the
attendance core.
"""
import logging
import math
from typing import Optional, List, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from campus.core.config import settings
from campus.core.errors import Conflict, InvalidCoordinate, InvalidDescriptor, NotFound
from campus.models.attendance import AttendanceRecord
from campus.models.classroom import ClassRoom, ClassEnrollment
from campus.models.domain import ClassLocation, EnrolledIdentity, GeoPoint
from campus.models.person import User, UserFace
from campus.modules.face_matching.service import to_descriptor
from campus.modules.geofence.service import validate_point

logger = logging.getLogger(__name__)


class DirectoryService:
    """Users, classes and enrollments backed by the database"""

    def __init__(self, db: Session, config=settings):
        self.db = db
        self.config = config

    # Users

    def register_user(
        self,
        name: str,
        email: str,
        student_id: str,
        descriptors: Sequence,
        department: Optional[str] = None,
    ) -> User:
        """
        Register a user with the descriptors captured at enrollment.

        Raises:
            InvalidDescriptor: too few descriptors, or any of them malformed
            Conflict: email or student id already registered
        """
        if len(descriptors) < self.config.min_enrollment_faces:
            raise InvalidDescriptor(
                f"At least {self.config.min_enrollment_faces} face descriptors are required, got {len(descriptors)}"
            )
        cleaned = [to_descriptor(d, self.config.descriptor_dimension).tolist() for d in descriptors]

        existing = self.db.query(User)\
            .filter((User.email == email) | (User.student_id == student_id))\
            .first()
        if existing:
            raise Conflict("User with this email or ID already exists")

        try:
            user = User(name=name, email=email, student_id=student_id, department=department)
            user.faces = [UserFace(descriptor=values) for values in cleaned]
            self.db.add(user)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to register user: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"✅ Registered user: {name} (ID: {user.id}, {len(cleaned)} faces)")
        return user

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise NotFound(f"User with ID {user_id} not found")
        return user

    def list_users(self) -> List[User]:
        """Get list of all active users"""
        return self.db.query(User)\
            .filter(User.is_active == True)\
            .order_by(User.id)\
            .all()

    def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        student_id: Optional[str] = None,
        department: Optional[str] = None,
        descriptors: Optional[Sequence] = None,
    ) -> User:
        """
        Edit a user's profile; new descriptors are added to the existing ones.

        Raises:
            NotFound: unknown or deleted user
            InvalidDescriptor: any new descriptor malformed
            Conflict: email or student id taken by another user
        """
        user = self.get_user(user_id)
        cleaned = [to_descriptor(d, self.config.descriptor_dimension).tolist() for d in descriptors or ()]

        clashes = []
        if email is not None:
            clashes.append(User.email == email)
        if student_id is not None:
            clashes.append(User.student_id == student_id)
        if clashes:
            taken = self.db.query(User)\
                .filter(User.id != user.id)\
                .filter(or_(*clashes))\
                .first()
            if taken:
                raise Conflict("User with this email or ID already exists")

        try:
            if name is not None:
                user.name = name
            if email is not None:
                user.email = email
            if student_id is not None:
                user.student_id = student_id
            if department is not None:
                user.department = department
            user.faces.extend(UserFace(descriptor=values) for values in cleaned)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to update user: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Updated user {user.name} (ID: {user.id}, +{len(cleaned)} faces)")
        return user

    def delete_user(self, user_id: int) -> User:
        """Soft delete - the user stops matching, past attendance is kept"""
        user = self.get_user(user_id)
        try:
            user.is_active = False
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to delete user: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Deactivated user: {user.name} (ID: {user_id})")
        return user

    def enrolled_classes(self, user_id: int) -> List[ClassRoom]:
        """Classes a student is enrolled in, by name"""
        self.get_user(user_id)
        return self.db.query(ClassRoom)\
            .join(ClassEnrollment)\
            .filter(ClassEnrollment.user_id == user_id)\
            .order_by(ClassRoom.name)\
            .all()

    def identities(self, class_id: Optional[int] = None) -> List[EnrolledIdentity]:
        """
        Snapshot of active users with usable descriptors.

        Stored descriptors that fail validation are skipped; users left
        without any are omitted.

        Args:
            class_id: restrict to students enrolled in this class
        """
        query = self.db.query(User)\
            .options(selectinload(User.faces))\
            .filter(User.is_active == True)
        if class_id is not None:
            query = query.join(ClassEnrollment).filter(ClassEnrollment.class_id == class_id)

        identities = []
        for user in query.order_by(User.id).all():
            identity = self.to_identity(user)
            if identity.descriptors:
                identities.append(identity)

        logger.debug(f"Loaded {len(identities)} identities for matching")
        return identities

    def to_identity(self, user: User) -> EnrolledIdentity:
        descriptors = []
        for face in user.faces:
            if face.descriptor is None:
                continue
            try:
                descriptors.append(to_descriptor(face.descriptor, self.config.descriptor_dimension))
            except InvalidDescriptor as e:
                logger.warning(f"Invalid descriptor for user {user.name} (face {face.id}): {e}")

        return EnrolledIdentity(id=str(user.id), name=user.name, descriptors=tuple(descriptors))

    # Classes

    def create_class(
        self,
        name: str,
        code: str,
        latitude: float,
        longitude: float,
        radius: Optional[float] = None,
        description: Optional[str] = None,
        teacher_name: Optional[str] = None,
    ) -> ClassRoom:
        """
        Raises:
            InvalidCoordinate: class location out of range
            Conflict: code already in use
        """
        validate_point(GeoPoint(latitude, longitude))
        radius = self._check_radius(radius)
        code = code.strip().upper()

        if self.db.query(ClassRoom).filter(ClassRoom.code == code).first():
            raise Conflict(f"Class code {code} already exists")

        classroom = ClassRoom(
            name=name,
            code=code,
            description=description,
            teacher_name=teacher_name,
            latitude=latitude,
            longitude=longitude,
            attendance_radius=radius,
        )
        try:
            self.db.add(classroom)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to create class: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Created class {classroom.code} ({classroom.name}), radius {classroom.attendance_radius}m")
        return classroom

    def _check_radius(self, radius: Optional[float]) -> float:
        if radius is None:
            return self.config.default_class_radius_meters
        radius = float(radius)
        if not math.isfinite(radius) or radius < 0:
            raise InvalidCoordinate(f"Attendance radius must be a non-negative number, got {radius}")
        return radius

    def list_classes(self, teacher_name: Optional[str] = None) -> List[ClassRoom]:
        """All classes, newest first, optionally only one teacher's"""
        query = self.db.query(ClassRoom)
        if teacher_name is not None:
            query = query.filter(ClassRoom.teacher_name == teacher_name)
        return query.order_by(ClassRoom.created_at.desc(), ClassRoom.id.desc()).all()

    def update_class_location(
        self,
        code: str,
        latitude: float,
        longitude: float,
        radius: Optional[float] = None,
    ) -> ClassRoom:
        """
        Move a class geofence; the radius is kept unless a new one is given.

        Raises:
            NotFound: unknown class code
            InvalidCoordinate: location or radius out of range
        """
        classroom = self.get_class_by_code(code)
        validate_point(GeoPoint(latitude, longitude))
        radius = self._check_radius(radius) if radius is not None else classroom.attendance_radius

        try:
            classroom.latitude = latitude
            classroom.longitude = longitude
            classroom.attendance_radius = radius
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to update class location: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Moved class {classroom.code} to ({latitude}, {longitude}), radius {radius}m")
        return classroom

    def delete_class(self, code: str):
        """Remove a class with its enrollments and attendance records"""
        classroom = self.get_class_by_code(code)
        try:
            self.db.query(AttendanceRecord)\
                .filter(AttendanceRecord.class_id == classroom.id)\
                .delete(synchronize_session=False)
            self.db.delete(classroom)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to delete class: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Deleted class {classroom.code}")

    def get_class_by_code(self, code: str) -> ClassRoom:
        classroom = self.db.query(ClassRoom)\
            .filter(ClassRoom.code == code.strip().upper())\
            .first()
        if not classroom:
            raise NotFound(f"Class {code} not found")
        return classroom

    def enroll(self, code: str, user_id: int) -> ClassRoom:
        """Enroll a student in a class by its code"""
        classroom = self.get_class_by_code(code)
        self.get_user(user_id)

        if self.is_enrolled(classroom.id, user_id):
            raise Conflict("Student is already enrolled in this class")

        try:
            self.db.add(ClassEnrollment(class_id=classroom.id, user_id=user_id))
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to enroll student: {e}", exc_info=True)
            self.db.rollback()
            raise

        logger.info(f"Enrolled user {user_id} in {classroom.code}")
        return classroom

    def is_enrolled(self, class_id: int, user_id: int) -> bool:
        return self.db.query(ClassEnrollment)\
            .filter(ClassEnrollment.class_id == class_id)\
            .filter(ClassEnrollment.user_id == user_id)\
            .first() is not None

    @staticmethod
    def class_location(classroom: ClassRoom) -> ClassLocation:
        return ClassLocation(
            id=str(classroom.id),
            anchor=GeoPoint(classroom.latitude, classroom.longitude),
            radius=classroom.attendance_radius,
            name=classroom.name,
        )
