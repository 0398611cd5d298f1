"""FastAPI dependency providers.

Long-lived objects (database, token service, rate limiter, completion
client) are built once in ``main.create_app`` and kept on ``app.state``;
request-scoped services are assembled here around a per-request session.
"""
from typing import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from educonnect.core.auth import TokenService, get_token_service
from educonnect.core.config import Settings
from educonnect.infrastructure.database import session_scope
from educonnect.services.accounts import CredentialStore
from educonnect.services.assistant import ChatProxy
from educonnect.services.conversation import ConversationLog


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Iterator[Session]:
    """Session for one request: committed on success, rolled back on error."""
    yield from session_scope(request.app.state.database)


def get_credential_store(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> CredentialStore:
    return CredentialStore(db, tokens)


def get_chat_proxy(
    request: Request,
    db: Session = Depends(get_db),
    accounts: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_app_settings),
) -> ChatProxy:
    return ChatProxy(
        accounts=accounts,
        conversations=ConversationLog(db),
        limiter=request.app.state.rate_limiter,
        completion=request.app.state.completion_client,
        context_turns=settings.chat_context_turns,
        allow_guest=settings.allow_guest_chat,
    )
