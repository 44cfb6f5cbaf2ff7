"""
Directory API Routes - users, classes and enrollment by class code
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from campus.core.database import get_db
from campus.core.errors import Conflict, InvalidCoordinate, InvalidDescriptor, NotFound
from campus.modules.directory.service import DirectoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["directory"])


# Request models
class RegisterUserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    student_id: str = Field(..., min_length=1)
    department: Optional[str] = None
    descriptors: List[List[float]]


class CreateClassRequest(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=20)
    latitude: float
    longitude: float
    attendance_radius: Optional[float] = None
    description: Optional[str] = None
    teacher_name: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    student_id: Optional[str] = Field(None, min_length=1)
    department: Optional[str] = None
    descriptors: Optional[List[List[float]]] = None


class UpdateLocationRequest(BaseModel):
    latitude: float
    longitude: float
    attendance_radius: Optional[float] = None


class EnrollRequest(BaseModel):
    code: str
    user_id: int


@router.post("/users")
def register_user(request: RegisterUserRequest, db: Session = Depends(get_db)):
    """Register a user with at least three face descriptors"""
    service = DirectoryService(db)
    try:
        user = service.register_user(
            name=request.name,
            email=request.email,
            student_id=request.student_id,
            descriptors=request.descriptors,
            department=request.department,
        )
    except InvalidDescriptor as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Conflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "success": True,
        "message": "User registered successfully",
        "user": user.to_dict()
    }


@router.get("/users")
def list_users(db: Session = Depends(get_db)):
    """Get list of all registered users"""
    users = DirectoryService(db).list_users()
    return {
        "total": len(users),
        "users": [u.to_dict() for u in users]
    }


@router.post("/classes")
def create_class(request: CreateClassRequest, db: Session = Depends(get_db)):
    service = DirectoryService(db)
    try:
        classroom = service.create_class(
            name=request.name,
            code=request.code,
            latitude=request.latitude,
            longitude=request.longitude,
            radius=request.attendance_radius,
            description=request.description,
            teacher_name=request.teacher_name,
        )
    except InvalidCoordinate as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Conflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"success": True, "class": classroom.to_dict()}


@router.get("/classes/{code}")
def get_class(code: str, db: Session = Depends(get_db)):
    try:
        classroom = DirectoryService(db).get_class_by_code(code)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return classroom.to_dict()


@router.post("/classes/enroll")
def enroll_in_class(request: EnrollRequest, db: Session = Depends(get_db)):
    """Enroll a student in a class using the class code"""
    try:
        classroom = DirectoryService(db).enroll(request.code, request.user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Conflict as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": "Student enrolled successfully",
        "class": classroom.to_dict()
    }


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    try:
        user = DirectoryService(db).get_user(user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return user.to_dict()


@router.put("/users/{user_id}")
def update_user(user_id: int, request: UpdateUserRequest, db: Session = Depends(get_db)):
    """Edit a user; any descriptors sent are added to the enrolled ones"""
    try:
        user = DirectoryService(db).update_user(
            user_id,
            name=request.name,
            email=request.email,
            student_id=request.student_id,
            department=request.department,
            descriptors=request.descriptors,
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidDescriptor as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Conflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"success": True, "user": user.to_dict()}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    try:
        user = DirectoryService(db).delete_user(user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"success": True, "message": f"User {user.name} deleted"}


@router.get("/users/{user_id}/classes")
def get_enrolled_classes(user_id: int, db: Session = Depends(get_db)):
    """Classes the student is enrolled in"""
    try:
        classes = DirectoryService(db).enrolled_classes(user_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "total": len(classes),
        "classes": [c.to_dict() for c in classes]
    }


@router.get("/classes")
def list_classes(teacher_name: Optional[str] = None, db: Session = Depends(get_db)):
    """All classes with their enrollment counts"""
    classes = DirectoryService(db).list_classes(teacher_name=teacher_name)
    return {
        "total": len(classes),
        "classes": [{**c.to_dict(), "students": len(c.enrollments)} for c in classes]
    }


@router.put("/classes/{code}/location")
def update_class_location(code: str, request: UpdateLocationRequest, db: Session = Depends(get_db)):
    try:
        classroom = DirectoryService(db).update_class_location(
            code,
            latitude=request.latitude,
            longitude=request.longitude,
            radius=request.attendance_radius,
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidCoordinate as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "class": classroom.to_dict()}


@router.delete("/classes/{code}")
def delete_class(code: str, db: Session = Depends(get_db)):
    """Delete a class along with its enrollments and attendance records"""
    try:
        DirectoryService(db).delete_class(code)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"success": True, "message": f"Class {code.upper()} deleted"}
