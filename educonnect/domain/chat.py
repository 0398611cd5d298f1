"""Domain models for the mentor chat."""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

GUEST_OWNER_ID = "guest"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatRequest(BaseModel):
    """Incoming chat payload from the widget.

    ``studentId`` is only read for parent accounts; students always chat
    under their own id.
    """
    text: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="messageId")
    student_id: Optional[str] = Field(default=None, alias="studentId")

    class Config:
        populate_by_name = True


class ChatMessage(BaseModel):
    """One stored turn of a conversation."""
    owner_id: str = Field(alias="studentId")
    message_id: str = Field(alias="messageId")
    role: ChatRole
    content: str
    timestamp: datetime
    user_type: Optional[str] = Field(default=None, alias="userType")

    class Config:
        populate_by_name = True
        from_attributes = True

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ChatReply(BaseModel):
    reply: str
    message_id: str = Field(alias="messageId")
    timestamp: datetime

    class Config:
        populate_by_name = True


class ChatHistory(BaseModel):
    owner_id: str
    history: List[ChatMessage] = Field(default_factory=list)
