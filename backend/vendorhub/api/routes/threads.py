"""
Lead thread routes.

- GET /threads: inbox, one row per counterpart
- POST /threads: consumer contacts a listing owner
- GET/POST /threads/{id}/messages: read and append messages
- POST /threads/{id}/transition: accept, decline or close a lead
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from vendorhub.api.dependencies import get_current_principal, get_db
from vendorhub.lib.jwt import Principal
from vendorhub.models.threads import Message, Thread, ThreadStatus
from vendorhub.services.thread_service import ThreadRole, ThreadService


# Pydantic schemas
class ThreadSummaryResponse(BaseModel):
    thread_id: UUID
    counterpart_id: UUID
    role: ThreadRole
    listing_id: Optional[UUID] = None
    last_message_snippet: Optional[str] = None
    last_message_at: Optional[datetime] = None
    status: ThreadStatus

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    """A message; `status` is the status of its thread."""
    id: UUID
    thread_id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    is_automated: bool
    sequence: int
    created_at: datetime
    status: ThreadStatus


class ThreadResponse(BaseModel):
    id: UUID
    supplier_id: UUID
    consumer_id: UUID
    listing_id: Optional[UUID] = None
    status: ThreadStatus
    message_count: int
    last_message_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OpenThreadRequest(BaseModel):
    listing_id: UUID
    content: str = Field(..., max_length=4000, examples=["Hi! Are you available on June 14?"])


class OpenThreadResponse(BaseModel):
    thread: ThreadResponse
    message: MessageResponse


class SendMessageRequest(BaseModel):
    content: str = Field(..., max_length=4000)


class TransitionRequest(BaseModel):
    status: ThreadStatus = Field(..., examples=["accepted"])


def to_message_response(message: Message, thread: Thread) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        thread_id=message.thread_id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        content=message.content,
        is_automated=message.is_automated,
        sequence=message.sequence,
        created_at=message.created_at,
        status=thread.status,
    )


def get_thread_service(db: Session = Depends(get_db)) -> ThreadService:
    """Get ThreadService instance with database session."""
    return ThreadService(db)


router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("", response_model=List[ThreadSummaryResponse])
def list_threads(
    status: Optional[ThreadStatus] = Query(None, description="Only threads in this status"),
    principal: Principal = Depends(get_current_principal),
    service: ThreadService = Depends(get_thread_service),
) -> List[ThreadSummaryResponse]:
    """Inbox for the caller, most recent activity first."""
    return [ThreadSummaryResponse.model_validate(s) for s in service.list_threads(principal, status)]


@router.post("", response_model=OpenThreadResponse, status_code=201)
def open_thread(
    request: OpenThreadRequest,
    principal: Principal = Depends(get_current_principal),
    service: ThreadService = Depends(get_thread_service),
) -> OpenThreadResponse:
    """
    Send a first (or follow-up) inquiry to a listing's owner.

    Raises:
        403: Caller is not a consumer, or owns the listing
        409: The existing thread with this supplier is closed
    """
    thread, message = service.open_thread(principal, request.listing_id, request.content)
    return OpenThreadResponse(
        thread=ThreadResponse.model_validate(thread),
        message=to_message_response(message, thread),
    )


@router.get("/{thread_id}/messages", response_model=List[MessageResponse])
def list_messages(
    thread_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: ThreadService = Depends(get_thread_service),
) -> List[MessageResponse]:
    thread = service.get_thread(principal, thread_id)
    return [to_message_response(m, thread) for m in service.list_messages(principal, thread_id)]


@router.post("/{thread_id}/messages", response_model=MessageResponse, status_code=201)
def send_message(
    thread_id: UUID,
    request: SendMessageRequest,
    principal: Principal = Depends(get_current_principal),
    service: ThreadService = Depends(get_thread_service),
) -> MessageResponse:
    message = service.send(principal, thread_id, request.content)
    return to_message_response(message, service.get_thread(principal, thread_id))


@router.post("/{thread_id}/transition", response_model=ThreadResponse)
def transition_thread(
    thread_id: UUID,
    request: TransitionRequest,
    principal: Principal = Depends(get_current_principal),
    service: ThreadService = Depends(get_thread_service),
) -> ThreadResponse:
    """
    Move a lead to a new status.

    Suppliers accept or decline pending leads; consumers close them.

    Raises:
        403: Target is reachable, but not by the caller's side
        409: Target is not reachable from the current status
    """
    thread = service.transition(principal, thread_id, request.status)
    return ThreadResponse.model_validate(thread)
