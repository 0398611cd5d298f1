"""Mentor chat: owner resolution, rate limiting, prompt building and the
round trip to the completion service.

The user's turn is committed before the completion call, so it stays in
the log even when the model fails and the caller gets a fallback reply.
"""
import json
import random
from typing import Optional

from educonnect.core.errors import (
    BadRequest,
    EduConnectError,
    InternalError,
    NotFound,
    TooManyRequests,
    Unauthorized,
)
from educonnect.core.logging import get_logger, LogTimer
from educonnect.domain.chat import GUEST_OWNER_ID, ChatHistory, ChatReply, ChatRequest, ChatRole
from educonnect.domain.user import TokenClaims
from educonnect.infrastructure.models import UserRecord
from educonnect.infrastructure.vertex import CompletionClient
from educonnect.services.accounts import CredentialStore
from educonnect.services.conversation import ConversationLog
from educonnect.services.rate_limiter import RateLimiter

logger = get_logger(__name__)

MAX_HISTORY_LIMIT = 200

KNOWLEDGE_BASE = {
    "math": "Focus on NCERT and RD Sharma. Practice daily problems and revise formulas regularly.",
    "science": "NCERT diagrams are crucial. Conduct small experiments and understand concepts practically.",
    "english": "Daily reading improves vocabulary. Practice writing essays and grammar exercises.",
    "general": "Maintain consistent study schedule. Take breaks every 45 minutes for better retention.",
}

MENTOR_GUIDELINES = """You are a friendly, knowledgeable educational mentor.

Guidelines:
1. Be supportive, encouraging, and personalized
2. Reference the student's performance data when relevant
3. Provide practical, actionable advice
4. Keep responses concise but helpful
5. If unsure, ask clarifying questions"""

FALLBACK_RESPONSES = [
    "I'm having trouble connecting right now. Please try again in a moment.",
    "It seems I'm experiencing some technical difficulties. Could you please rephrase your question?",
    "I apologize, but I'm unable to process your request at the moment. Please try again shortly.",
]


def pick_fallback() -> str:
    return random.choice(FALLBACK_RESPONSES)


def build_student_context(student: UserRecord) -> str:
    performance = student.performance or {}
    return (
        "Student Profile:\n"
        f"- Name: {student.name}\n"
        f"- Class: {student.student_class or 'Not specified'}\n"
        f"- Performance: Math {performance.get('math', 0)}%, "
        f"Science {performance.get('science', 0)}%, "
        f"English {performance.get('english', 0)}%\n"
        f"- Attendance: {student.attendance or 0}%\n"
        f"- Recent Remarks: {student.remarks or 'No remarks yet'}"
    )


def build_system_instruction(student_context: Optional[str], transcript: str) -> str:
    sections = [
        MENTOR_GUIDELINES,
        "Knowledge Base:\n" + json.dumps(KNOWLEDGE_BASE, indent=2),
    ]
    if student_context:
        sections.append("Student Context:\n" + student_context)
    if transcript:
        sections.append("Recent Conversation:\n" + transcript)
    sections.append("Always respond in a warm, mentor-like tone.")
    return "\n\n".join(sections)


class ChatProxy:
    """Orchestrates one chat exchange.

    Args:
        accounts: Credential store for student lookups
        conversations: Conversation log for the same request
        limiter: Shared rate limiter
        completion: Client for the external completion API
        context_turns: How many recent turns go into the prompt
        allow_guest: Serve unauthenticated callers under the guest owner
    """

    def __init__(
        self,
        accounts: CredentialStore,
        conversations: ConversationLog,
        limiter: RateLimiter,
        completion: CompletionClient,
        context_turns: int = 6,
        allow_guest: bool = False,
    ):
        self.accounts = accounts
        self.conversations = conversations
        self.limiter = limiter
        self.completion = completion
        self.context_turns = context_turns
        self.allow_guest = allow_guest

    def _requested_owner(self, caller: Optional[TokenClaims], student_id: Optional[str]) -> str:
        """Identity the caller wants to chat as: own id, a student's id/code, or guest.

        A parent may name any student. ``children`` is only filled for the
        sample parent and no operation links a child to an account.
        """
        if caller is None:
            if not self.allow_guest:
                raise Unauthorized("Access token required")
            return GUEST_OWNER_ID
        if caller.is_student:
            return caller.user_id
        if not student_id:
            raise BadRequest("Student ID required for parent accounts")
        return student_id

    async def handle(self, caller: Optional[TokenClaims], req: ChatRequest) -> ChatReply:
        """Run the chat pipeline for one message.

        Raises:
            BadRequest: Empty text, or a parent without a target student
            TooManyRequests: The owner exhausted its window
            NotFound: The target student does not exist
            InternalError: Anything failing after validation; carries a
                fallback ``reply`` for the widget
        """
        text = (req.text or "").strip()
        if not text:
            raise BadRequest("Message text is required")

        requested = self._requested_owner(caller, req.student_id)

        # Budget is per conversation owner, so id and student code share one window
        student = None
        owner_id = GUEST_OWNER_ID
        if caller is not None:
            student = self.accounts.find_student(requested)
            if student is None:
                raise NotFound("Student not found")
            owner_id = student.id

        if not self.limiter.allow(owner_id):
            raise TooManyRequests("Too many requests. Please wait a moment.")

        user_type = caller.user_type.value if caller else GUEST_OWNER_ID

        with LogTimer(logger, "chat_request"):
            try:
                if student is not None:
                    self.accounts.touch_last_active(student)

                self.conversations.append(
                    owner_id, ChatRole.USER, text, message_id=req.message_id, user_type=user_type
                )

                recent = self.conversations.recent(owner_id, self.context_turns)
                system_instruction = build_system_instruction(
                    build_student_context(student) if student is not None else None,
                    ConversationLog.transcript(recent),
                )

                reply = await self.completion.complete(system_instruction, text)

                stored = self.conversations.append(owner_id, ChatRole.ASSISTANT, reply)

            except EduConnectError as exc:
                logger.warning(
                    f"Chat failed: {exc.message}",
                    extra={"owner_id": owner_id, "error_type": type(exc).__name__},
                )
                raise InternalError("Chat service failed", reply=pick_fallback()) from exc
            except Exception as exc:
                logger.error(
                    f"Chat failed unexpectedly: {exc}",
                    extra={"owner_id": owner_id, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise InternalError("Chat service failed", reply=pick_fallback()) from exc

        return ChatReply(reply=stored.content, message_id=stored.message_id, timestamp=stored.timestamp)

    def history(self, caller: Optional[TokenClaims], student_id: Optional[str], limit: int) -> ChatHistory:
        """Most recent turns of a conversation, oldest first.

        Raises:
            BadRequest: A parent did not name a student
        """
        if caller is not None and caller.is_parent and not student_id:
            raise BadRequest("Student ID required")
        requested = self._requested_owner(caller, student_id)

        owner_id = requested
        if caller is not None:
            student = self.accounts.find_student(requested)
            if student is not None:
                owner_id = student.id

        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        return ChatHistory(owner_id=owner_id, history=self.conversations.recent(owner_id, limit))
