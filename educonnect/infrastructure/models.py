"""SQLAlchemy ORM records.

``users`` holds both roles; role-specific columns stay NULL for the other
role. Vocational enrollments and chat turns live in their own tables keyed
by the owning user.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from educonnect.infrastructure.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    avatar: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_active: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # student
    student_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    student_class: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    performance: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    attendance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reward_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # parent
    children: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    courses: Mapped[List["CourseEnrollmentRecord"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="CourseEnrollmentRecord.registered_at",
    )


class CourseEnrollmentRecord(Base):
    __tablename__ = "vocational_courses"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_vocational_courses_user_course"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_name: Mapped[str] = mapped_column(String(255), nullable=False)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_accessed: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user: Mapped[UserRecord] = relationship(back_populates="courses")


class ChatMessageRecord(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("idx_chat_messages_owner_timestamp", "owner_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    message_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
