"""Credential store: registration, login, profiles and vocational courses.

Every public method either returns domain models or raises one of the
``educonnect.core.errors`` types; password hashes never leave this module.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from educonnect.core.auth import TokenService, hash_password, verify_password
from educonnect.core.errors import Conflict, Forbidden, NotFound, Unauthorized
from educonnect.core.logging import get_logger, LogTimer
from educonnect.domain.user import (
    AuthResult,
    CourseEnrollment,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    TokenClaims,
    UserProfile,
    UserType,
)
from educonnect.infrastructure.models import CourseEnrollmentRecord, UserRecord
from educonnect.utils.text import avatar_initials, generate_student_code

logger = get_logger(__name__)

DEFAULT_STUDENT_CLASS = 10
DEFAULT_SUBJECTS = ("math", "science", "english")

SAMPLE_STUDENT = {
    "email": "student@educonnect.com",
    "password": "student123",
    "name": "Rahul Student",
    "student_code": "S123",
    "student_class": 10,
    "performance": {"math": 85, "science": 78, "english": 92},
    "attendance": 95,
    "remarks": "Excellent student, needs improvement in science",
    "reward_points": 1250,
}
SAMPLE_PARENT = {
    "email": "parent@educonnect.com",
    "password": "parent123",
    "name": "Parent User",
    "children": ["S123"],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_enrollment(record: CourseEnrollmentRecord) -> CourseEnrollment:
    return CourseEnrollment(
        course_id=record.course_id,
        course_name=record.course_name,
        registered_at=record.registered_at,
        progress=record.progress,
        completed=record.completed,
        last_accessed=record.last_accessed,
    )


def to_profile(user: UserRecord) -> UserProfile:
    """Build the caller-facing profile; the password hash is never copied."""
    profile = UserProfile(
        id=user.id,
        email=user.email,
        name=user.name,
        user_type=user.user_type,
        avatar=user.avatar,
        created_at=user.created_at,
        last_active=user.last_active,
    )
    if user.user_type == UserType.STUDENT.value:
        profile.student_id = user.student_code
        profile.student_class = user.student_class
        profile.performance = dict(user.performance or {})
        profile.attendance = user.attendance
        profile.remarks = user.remarks
        profile.reward_points = user.reward_points
        profile.vocational_courses = [to_enrollment(c) for c in user.courses]
    elif user.user_type == UserType.PARENT.value:
        profile.children = list(user.children or [])
    return profile


def claims_for(user: UserRecord) -> TokenClaims:
    return TokenClaims(
        user_id=user.id,
        email=user.email,
        user_type=user.user_type,
        name=user.name,
    )


class CredentialStore:
    """Account operations over one database session.

    Args:
        db: SQLAlchemy session scoped to the current request
        tokens: Token service used to issue session tokens
    """

    def __init__(self, db: Session, tokens: TokenService):
        self.db = db
        self.tokens = tokens

    # -----------------
    # LOOKUPS
    # -----------------

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        return self.db.scalar(select(UserRecord).where(UserRecord.email == email))

    def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self.db.get(UserRecord, user_id)

    def find_student(self, identifier: str) -> Optional[UserRecord]:
        """Resolve a student by account id or by student code (e.g. ``S123``)."""
        stmt = select(UserRecord).where(
            UserRecord.user_type == UserType.STUDENT.value,
            (UserRecord.id == identifier) | (UserRecord.student_code == identifier),
        )
        return self.db.scalars(stmt).first()

    # -----------------
    # REGISTRATION & LOGIN
    # -----------------

    def register(self, req: RegisterRequest) -> AuthResult:
        """Create an account and issue its first token.

        Raises:
            Conflict: If the e-mail is already registered
        """
        with LogTimer(logger, "user_registration"):
            if self.get_by_email(req.email) is not None:
                logger.warning(f"Duplicate registration attempt for {req.email}")
                raise Conflict("User already exists with this email")

            user = UserRecord(
                email=req.email,
                password_hash=hash_password(req.password),
                name=req.name,
                user_type=req.user_type.value,
                avatar=avatar_initials(req.name),
                created_at=_now(),
            )

            if req.user_type == UserType.STUDENT:
                user.student_code = req.student_id or generate_student_code()
                user.student_class = req.student_class or DEFAULT_STUDENT_CLASS
                user.performance = {subject: 0 for subject in DEFAULT_SUBJECTS}
                user.attendance = 0
                user.reward_points = 0
                user.remarks = "New student"
            else:
                user.children = []

            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                # Lost a race with a concurrent registration for the same e-mail
                self.db.rollback()
                logger.warning(f"Duplicate registration detected on insert for {req.email}")
                raise Conflict("User already exists with this email")
            self.db.refresh(user)

            logger.info(
                f"User registered: {user.email}",
                extra={"user_id": user.id, "user_type": user.user_type},
            )
            return AuthResult(token=self.tokens.issue(claims_for(user)), user=to_profile(user))

    def login(self, req: LoginRequest) -> AuthResult:
        """Check credentials and issue a new token.

        Raises:
            Unauthorized: Unknown e-mail, wrong password, or role mismatch
                when ``req.user_type`` is given
        """
        with LogTimer(logger, "user_authentication"):
            user = self.get_by_email(req.email)
            if user is None:
                logger.warning(f"Login attempt for non-existent user: {req.email}")
                raise Unauthorized("Invalid email or password")

            if req.user_type is not None and user.user_type != req.user_type.value:
                logger.warning(f"Role mismatch on login for {req.email}")
                raise Unauthorized(f"Account is not a {req.user_type.value} account")

            if not verify_password(req.password, user.password_hash):
                logger.warning(f"Invalid password for user: {req.email}")
                raise Unauthorized("Invalid email or password")

            logger.info(f"User authenticated successfully: {req.email}", extra={"user_id": user.id})
            return AuthResult(token=self.tokens.issue(claims_for(user)), user=to_profile(user))

    # -----------------
    # PROFILE
    # -----------------

    def get_profile(self, email: str) -> UserProfile:
        user = self.get_by_email(email)
        if user is None:
            raise NotFound("User not found")
        return to_profile(user)

    def update_profile(self, email: str, update: ProfileUpdate) -> UserProfile:
        """Apply name/class changes.

        Raises:
            NotFound: If the user is missing or nothing would change
        """
        user = self.get_by_email(email)
        if user is None:
            raise NotFound("User not found or no changes made")

        changed = False
        if update.name and update.name != user.name:
            user.name = update.name
            user.avatar = avatar_initials(update.name)
            changed = True
        if (
            update.student_class is not None
            and user.user_type == UserType.STUDENT.value
            and update.student_class != user.student_class
        ):
            user.student_class = update.student_class
            changed = True

        if not changed:
            raise NotFound("User not found or no changes made")

        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Profile updated for {email}", extra={"user_id": user.id})
        return to_profile(user)

    def touch_last_active(self, user: UserRecord) -> None:
        user.last_active = _now()
        self.db.commit()

    def list_students(self) -> List[UserProfile]:
        stmt = (
            select(UserRecord)
            .where(UserRecord.user_type == UserType.STUDENT.value)
            .order_by(UserRecord.created_at)
        )
        return [to_profile(user) for user in self.db.scalars(stmt)]

    # -----------------
    # VOCATIONAL COURSES
    # -----------------

    def _require_student(self, claims: TokenClaims, message: str) -> UserRecord:
        if not claims.is_student:
            raise Forbidden(message)
        user = self.get_by_id(claims.user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def register_vocational_course(
        self, claims: TokenClaims, course_id: str, course_name: str
    ) -> Tuple[CourseEnrollment, bool]:
        """Enroll a student in a course unless already enrolled.

        Returns:
            The enrollment and whether it was newly created

        Raises:
            Forbidden: If the caller is not a student
        """
        user = self._require_student(claims, "Only students can register for vocational courses")

        for existing in user.courses:
            if existing.course_id == course_id:
                logger.debug(f"{user.email} already enrolled in {course_id}")
                return to_enrollment(existing), False

        now = _now()
        enrollment = CourseEnrollmentRecord(
            course_id=course_id,
            course_name=course_name,
            registered_at=now,
            progress=0,
            completed=False,
            last_accessed=now,
        )
        user.courses.append(enrollment)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self.db.refresh(user)
            existing = next(c for c in user.courses if c.course_id == course_id)
            return to_enrollment(existing), False

        logger.info(f"{user.email} registered for course {course_id}", extra={"user_id": user.id})
        return to_enrollment(enrollment), True

    def list_vocational_courses(self, claims: TokenClaims) -> List[CourseEnrollment]:
        user = self._require_student(claims, "Only students can access vocational courses")
        return [to_enrollment(c) for c in user.courses]

    def update_course_progress(self, user_id: str, course_id: str, progress: float) -> CourseEnrollment:
        """Set progress for an existing enrollment and refresh its last access.

        Progress is clamped to 0..100; reaching 100 marks the course completed.

        Raises:
            NotFound: If the (user, course) pair has no enrollment
        """
        enrollment = self.db.scalar(
            select(CourseEnrollmentRecord).where(
                CourseEnrollmentRecord.user_id == user_id,
                CourseEnrollmentRecord.course_id == course_id,
            )
        )
        if enrollment is None:
            raise NotFound("Course not found")

        progress = max(0.0, min(100.0, float(progress)))
        enrollment.progress = progress
        enrollment.completed = progress >= 100
        enrollment.last_accessed = _now()
        self.db.commit()
        self.db.refresh(enrollment)
        return to_enrollment(enrollment)

    # -----------------
    # SAMPLE DATA
    # -----------------

    def seed_sample_data(self) -> bool:
        """Insert the demo student and parent when no users exist.

        Returns:
            True if sample users were created
        """
        if self.db.scalar(select(UserRecord.id).limit(1)) is not None:
            return False

        now = _now()
        student = dict(SAMPLE_STUDENT)
        parent = dict(SAMPLE_PARENT)
        self.db.add_all([
            UserRecord(
                email=student.pop("email"),
                password_hash=hash_password(student.pop("password")),
                user_type=UserType.STUDENT.value,
                avatar=avatar_initials(student["name"]),
                created_at=now,
                **student,
            ),
            UserRecord(
                email=parent.pop("email"),
                password_hash=hash_password(parent.pop("password")),
                user_type=UserType.PARENT.value,
                avatar=avatar_initials(parent["name"]),
                created_at=now,
                **parent,
            ),
        ])
        self.db.commit()
        logger.info("Sample user data created")
        return True
