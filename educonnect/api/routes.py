"""REST routes for the EduConnect API.

Every JSON response carries ``success``; errors are raised as
``educonnect.core.errors`` types and rendered by the handlers in main.py.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from educonnect.api.deps import get_app_settings, get_chat_proxy, get_credential_store
from educonnect.core.auth import get_current_user, get_optional_user, require_role
from educonnect.core.config import Settings
from educonnect.core.logging import get_logger
from educonnect.domain.chat import ChatRequest
from educonnect.domain.user import (
    CourseRegistration,
    LoginRequest,
    ProfileUpdate,
    ProgressUpdate,
    RegisterRequest,
    TokenClaims,
    UserType,
)
from educonnect.services.accounts import CredentialStore
from educonnect.services.assistant import ChatProxy

logger = get_logger(__name__)
router = APIRouter(prefix="/api")


# -----------------
# AUTHENTICATION
# -----------------

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, accounts: CredentialStore = Depends(get_credential_store)):
    """Create a student or parent account and return a session token.

    Example:
        POST /api/register
        {"email": "a@x.com", "password": "secret", "name": "Asha K", "userType": "student"}
    """
    result = accounts.register(req)
    return {
        "success": True,
        "message": "User registered successfully",
        "token": result.token,
        "user": result.user.to_wire(),
    }


@router.post("/login")
def login(req: LoginRequest, accounts: CredentialStore = Depends(get_credential_store)):
    """Authenticate with e-mail and password, optionally pinning the role."""
    result = accounts.login(req)
    return {
        "success": True,
        "message": "Login successful",
        "token": result.token,
        "user": result.user.to_wire(),
    }


# -----------------
# PROFILE
# -----------------

@router.get("/profile")
def get_profile(
    current_user: TokenClaims = Depends(get_current_user),
    accounts: CredentialStore = Depends(get_credential_store),
):
    profile = accounts.get_profile(current_user.email)
    return {"success": True, "user": profile.to_wire()}


@router.put("/profile")
def update_profile(
    update: ProfileUpdate,
    current_user: TokenClaims = Depends(get_current_user),
    accounts: CredentialStore = Depends(get_credential_store),
):
    profile = accounts.update_profile(current_user.email, update)
    return {"success": True, "message": "Profile updated successfully", "user": profile.to_wire()}


@router.get("/students")
def list_students(
    current_user: TokenClaims = Depends(
        require_role([UserType.PARENT], "Access denied. Parent accounts only.")
    ),
    accounts: CredentialStore = Depends(get_credential_store),
):
    """All student profiles, for the parent dashboard."""
    students = accounts.list_students()
    return {"success": True, "students": [s.to_wire() for s in students]}


# -----------------
# VOCATIONAL COURSES
# -----------------

@router.post("/vocational/register")
@router.put("/vocational/register")
def register_vocational_course(
    req: CourseRegistration,
    current_user: TokenClaims = Depends(get_current_user),
    accounts: CredentialStore = Depends(get_credential_store),
):
    """Enroll the calling student in a course (no-op if already enrolled)."""
    enrollment, created = accounts.register_vocational_course(current_user, req.course_id, req.course_name)
    message = (
        f"Successfully registered for {req.course_name}"
        if created
        else f"Already registered for {enrollment.course_name}"
    )
    return {"success": True, "message": message}


@router.get("/vocational/courses")
def list_vocational_courses(
    current_user: TokenClaims = Depends(get_current_user),
    accounts: CredentialStore = Depends(get_credential_store),
):
    courses = accounts.list_vocational_courses(current_user)
    return {
        "success": True,
        "courses": [c.model_dump(by_alias=True, mode="json") for c in courses],
    }


@router.put("/vocational/progress")
def update_course_progress(
    req: ProgressUpdate,
    current_user: TokenClaims = Depends(get_current_user),
    accounts: CredentialStore = Depends(get_credential_store),
):
    enrollment = accounts.update_course_progress(current_user.user_id, req.course_id, req.progress)
    return {
        "success": True,
        "message": "Progress updated successfully",
        "course": enrollment.model_dump(by_alias=True, mode="json"),
    }


# -----------------
# CHAT
# -----------------

@router.post("/chat")
async def chat_endpoint(
    req: ChatRequest,
    current_user: Optional[TokenClaims] = Depends(get_optional_user),
    chat: ChatProxy = Depends(get_chat_proxy),
):
    """Send a message to the AI mentor.

    Students chat as themselves; parents pass ``studentId``. With guest chat
    enabled, requests without a token use the shared guest conversation.
    """
    result = await chat.handle(current_user, req)
    return {
        "success": True,
        "reply": result.reply,
        "messageId": result.message_id,
        "timestamp": result.timestamp.isoformat(),
    }


@router.get("/chat/history")
@router.get("/chat/history/{student_id}")
def chat_history(
    student_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    current_user: Optional[TokenClaims] = Depends(get_optional_user),
    chat: ChatProxy = Depends(get_chat_proxy),
    settings: Settings = Depends(get_app_settings),
):
    """Recent conversation turns, oldest first."""
    result = chat.history(current_user, student_id, limit or settings.chat_history_limit)
    return {"success": True, "history": [m.to_wire() for m in result.history]}


# -----------------
# HEALTH
# -----------------

@router.get("/health")
def health_check(request: Request):
    """Liveness plus database and rate-limiter status (no auth required)."""
    database = request.app.state.database
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "Connected" if database.is_connected() else "Disconnected",
        "rateLimiter": request.app.state.rate_limiter.backend,
    }
