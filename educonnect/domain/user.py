"""Domain models for accounts, tokens and vocational courses.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either form on input.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field


class UserType(str, Enum):
    """Account role."""

    STUDENT = "student"
    PARENT = "parent"


class TokenClaims(BaseModel):
    """Decoded session token payload.

    Attributes:
        user_id: Account id the token was issued for
        email: Account e-mail
        user_type: Account role
        name: Display name
        exp: Expiry time
        iat: Issued-at time
    """
    user_id: str = Field(alias="userId")
    email: str
    user_type: UserType = Field(alias="userType")
    name: str
    exp: Optional[datetime] = None
    iat: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def is_student(self) -> bool:
        return self.user_type == UserType.STUDENT

    @property
    def is_parent(self) -> bool:
        return self.user_type == UserType.PARENT


class RegisterRequest(BaseModel):
    """Registration body."""
    email: EmailStr
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)
    user_type: UserType = Field(alias="userType")
    student_id: Optional[str] = Field(default=None, alias="studentId")
    student_class: Optional[int] = Field(default=None, alias="studentClass")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "email": "a@x.com",
                "password": "secret123",
                "name": "Asha Kumar",
                "userType": "student",
                "studentClass": 10,
            }
        }


class LoginRequest(BaseModel):
    """Login credentials; ``userType`` pins the expected role when given."""
    email: EmailStr
    password: str = Field(min_length=1)
    user_type: Optional[UserType] = Field(default=None, alias="userType")

    class Config:
        populate_by_name = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    student_class: Optional[int] = Field(default=None, alias="studentClass")

    class Config:
        populate_by_name = True


class CourseEnrollment(BaseModel):
    """A student's enrollment in one vocational course."""
    course_id: str = Field(alias="courseId")
    course_name: str = Field(alias="courseName")
    registered_at: datetime = Field(alias="registeredAt")
    progress: float = 0
    completed: bool = False
    last_accessed: datetime = Field(alias="lastAccessed")

    class Config:
        populate_by_name = True
        from_attributes = True


class CourseRegistration(BaseModel):
    course_id: str = Field(min_length=1, alias="courseId")
    course_name: str = Field(min_length=1, alias="courseName")

    class Config:
        populate_by_name = True


class ProgressUpdate(BaseModel):
    course_id: str = Field(min_length=1, alias="courseId")
    progress: float

    class Config:
        populate_by_name = True


class UserProfile(BaseModel):
    """Account as returned to callers. Never carries the password hash.

    Role-specific fields are ``None`` for the other role and are dropped when
    serialised with ``exclude_none``.
    """
    id: str
    email: str
    name: str
    user_type: UserType = Field(alias="userType")
    avatar: str = ""
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    last_active: Optional[datetime] = Field(default=None, alias="lastActive")

    # Student fields
    student_id: Optional[str] = Field(default=None, alias="studentId")
    student_class: Optional[int] = Field(default=None, alias="studentClass")
    performance: Optional[Dict[str, float]] = None
    attendance: Optional[float] = None
    remarks: Optional[str] = None
    reward_points: Optional[int] = Field(default=None, alias="rewardPoints")
    vocational_courses: Optional[List[CourseEnrollment]] = Field(default=None, alias="vocationalCourses")

    # Parent fields
    children: Optional[List[str]] = None

    class Config:
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AuthResult(BaseModel):
    """Outcome of a successful registration or login."""
    token: str
    user: UserProfile
