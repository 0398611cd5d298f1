"""Conversation log: append-only chat turns grouped by owner."""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from educonnect.core.logging import get_logger
from educonnect.domain.chat import ChatMessage, ChatRole
from educonnect.infrastructure.models import ChatMessageRecord

logger = get_logger(__name__)


def to_message(record: ChatMessageRecord) -> ChatMessage:
    return ChatMessage(
        owner_id=record.owner_id,
        message_id=record.message_id,
        role=record.role,
        content=record.content,
        timestamp=record.timestamp,
        user_type=record.user_type,
    )


class ConversationLog:
    """Reads and appends chat turns.

    Each ``append`` commits on its own, so a stored turn survives failures
    later in the same request.
    """

    def __init__(self, db: Session):
        self.db = db
        self._last_timestamp: Optional[datetime] = None

    def append(
        self,
        owner_id: str,
        role: ChatRole,
        content: str,
        message_id: Optional[str] = None,
        user_type: Optional[str] = None,
    ) -> ChatMessage:
        """Write one turn; a message id is generated when none is given."""
        timestamp = datetime.now(timezone.utc)
        # Turns written through one log never go backwards in time
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        record = ChatMessageRecord(
            owner_id=owner_id,
            message_id=message_id or uuid.uuid4().hex,
            role=ChatRole(role).value,
            content=content,
            user_type=user_type,
            timestamp=timestamp,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.debug(
            f"Stored {record.role} turn",
            extra={"owner_id": owner_id, "user_type": user_type},
        )
        return to_message(record)

    def recent(self, owner_id: str, limit: int) -> List[ChatMessage]:
        """Most recent ``limit`` turns for an owner, oldest first."""
        if limit <= 0:
            return []
        stmt = (
            select(ChatMessageRecord)
            .where(ChatMessageRecord.owner_id == owner_id)
            .order_by(ChatMessageRecord.timestamp.desc(), ChatMessageRecord.id.desc())
            .limit(limit)
        )
        records = list(self.db.scalars(stmt))
        records.reverse()
        return [to_message(r) for r in records]

    @staticmethod
    def transcript(messages: List[ChatMessage]) -> str:
        """Render turns as ``role: content`` lines for prompt context."""
        return "\n".join(f"{m.role.value}: {m.content}" for m in messages)
