"""Lead thread engine.

A thread is the conversation between one supplier and one consumer. Its
status moves through a small state machine:

    pending ──supplier──> accepted ──consumer──> closed
       │  └──supplier──> declined ──consumer──> closed
       └────────────────consumer──────────────> closed

`closed` is terminal and blocks new messages for both parties. Each
transition appends a fixed notice from the acting party in the same
transaction that updates the status.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple
from uuid import UUID
import enum

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendorhub.api.middleware.error_handler import (
    BadRequestException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ThreadClosedException,
    UnauthorizedException,
)
from vendorhub.lib.jwt import Principal
from vendorhub.lib.logging import get_logger
from vendorhub.lib.metrics import MetricsCollector, get_metrics_collector
from vendorhub.lib.timeutils import as_utc, utcnow
from vendorhub.models.listings import Listing
from vendorhub.models.threads import Message, Thread, ThreadStatus

logger = get_logger(__name__)


class ThreadRole(str, enum.Enum):
    """Side a principal is on within one thread."""
    SUPPLIER = "supplier"
    CONSUMER = "consumer"


TRANSITIONS: Dict[Tuple[ThreadStatus, ThreadRole], FrozenSet[ThreadStatus]] = {
    (ThreadStatus.PENDING, ThreadRole.SUPPLIER): frozenset({ThreadStatus.ACCEPTED, ThreadStatus.DECLINED}),
    (ThreadStatus.PENDING, ThreadRole.CONSUMER): frozenset({ThreadStatus.CLOSED}),
    (ThreadStatus.ACCEPTED, ThreadRole.CONSUMER): frozenset({ThreadStatus.CLOSED}),
    (ThreadStatus.DECLINED, ThreadRole.CONSUMER): frozenset({ThreadStatus.CLOSED}),
}

TRANSITION_NOTICES: Dict[ThreadStatus, str] = {
    ThreadStatus.ACCEPTED: "Your inquiry has been accepted. Let's discuss the details here.",
    ThreadStatus.DECLINED: "Thank you for your interest. Unfortunately I am not available for this request.",
    ThreadStatus.CLOSED: "This lead has been closed.",
}

PREVIEW_LENGTH = 200


def allowed_targets(current: ThreadStatus, role: ThreadRole) -> FrozenSet[ThreadStatus]:
    """Statuses `role` may move a thread to from `current`."""
    return TRANSITIONS.get((current, role), frozenset())


def reachable_targets(current: ThreadStatus) -> FrozenSet[ThreadStatus]:
    """Statuses reachable from `current` by either party."""
    targets: FrozenSet[ThreadStatus] = frozenset()
    for role in ThreadRole:
        targets = targets | allowed_targets(current, role)
    return targets


@dataclass
class ThreadSummary:
    """Inbox row: one per counterpart."""
    thread_id: UUID
    counterpart_id: UUID
    role: ThreadRole
    listing_id: Optional[UUID]
    last_message_snippet: Optional[str]
    last_message_at: Optional[datetime]
    status: ThreadStatus


class ThreadService:
    """Message thread engine.

    Every operation takes the acting Principal explicitly. Mutating
    operations commit before returning.
    """

    def __init__(self, session: Session, metrics: Optional[MetricsCollector] = None):
        self.session = session
        self.metrics = metrics or get_metrics_collector()

    # ===== Helpers =====

    @staticmethod
    def _require_principal(principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise UnauthorizedException("Please sign in to continue")
        return principal

    @staticmethod
    def role_in(thread: Thread, principal: Principal) -> ThreadRole:
        if principal.user_id == thread.supplier_id:
            return ThreadRole.SUPPLIER
        if principal.user_id == thread.consumer_id:
            return ThreadRole.CONSUMER
        raise ForbiddenException("You are not a participant in this conversation")

    def _load_thread(self, thread_id: UUID, lock: bool = False) -> Thread:
        stmt = select(Thread).where(Thread.id == thread_id)
        if lock:
            stmt = stmt.with_for_update()
        thread = self.session.execute(stmt).scalar_one_or_none()
        if thread is None:
            raise NotFoundException("Thread", str(thread_id))
        return thread

    def _append(self, thread: Thread, sender_id: UUID, content: str, automated: bool = False) -> Message:
        """Add a message and refresh the thread's inbox summary. Caller commits."""
        receiver_id = thread.consumer_id if sender_id == thread.supplier_id else thread.supplier_id

        # Keep creation order aligned with sequence even if the clock steps back
        created_at = utcnow()
        last = as_utc(thread.last_message_at)
        if last is not None and created_at < last:
            created_at = last + timedelta(microseconds=1)

        thread.message_count = (thread.message_count or 0) + 1
        message = Message(
            thread_id=thread.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            is_automated=automated,
            sequence=thread.message_count,
            created_at=created_at,
        )
        thread.last_message_at = created_at
        thread.last_message_preview = content[:PREVIEW_LENGTH]
        self.session.add(message)
        return message

    @staticmethod
    def _clean_content(content: str) -> str:
        text = (content or "").strip()
        if not text:
            raise BadRequestException("Message content is required", details={"field": "content"})
        return text

    # ===== Queries =====

    def get_thread(self, principal: Optional[Principal], thread_id: UUID) -> Thread:
        """Fetch a thread the principal takes part in."""
        principal = self._require_principal(principal)
        thread = self._load_thread(thread_id)
        self.role_in(thread, principal)
        return thread

    def list_threads(
        self,
        principal: Optional[Principal],
        status: Optional[ThreadStatus] = None,
    ) -> List[ThreadSummary]:
        """Inbox for a user, most recent activity first."""
        principal = self._require_principal(principal)

        stmt = select(Thread).where(
            or_(Thread.supplier_id == principal.user_id, Thread.consumer_id == principal.user_id)
        )
        if status is not None:
            stmt = stmt.where(Thread.status == status)
        stmt = stmt.order_by(Thread.last_message_at.desc(), Thread.created_at.desc())

        summaries = []
        for thread in self.session.execute(stmt).scalars():
            role = self.role_in(thread, principal)
            summaries.append(ThreadSummary(
                thread_id=thread.id,
                counterpart_id=thread.consumer_id if role == ThreadRole.SUPPLIER else thread.supplier_id,
                role=role,
                listing_id=thread.listing_id,
                last_message_snippet=thread.last_message_preview,
                last_message_at=thread.last_message_at,
                status=thread.status,
            ))
        return summaries

    def list_messages(self, principal: Optional[Principal], thread_id: UUID) -> List[Message]:
        """Messages of one thread in creation order."""
        thread = self.get_thread(principal, thread_id)
        stmt = (
            select(Message)
            .where(Message.thread_id == thread.id)
            .order_by(Message.created_at.asc(), Message.sequence.asc())
        )
        return list(self.session.execute(stmt).scalars())

    # ===== Commands =====

    def open_thread(
        self,
        principal: Optional[Principal],
        listing_id: UUID,
        content: str,
    ) -> Tuple[Thread, Message]:
        """Consumer contacts a listing's owner.

        Reuses the existing thread with that supplier if there is one; the
        first message of a new thread sets it to pending.
        """
        principal = self._require_principal(principal)
        if not principal.is_consumer:
            raise ForbiddenException("Only consumers can contact suppliers")
        text = self._clean_content(content)

        listing = self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFoundException("Listing", str(listing_id))
        if listing.owner_id == principal.user_id:
            raise ForbiddenException("You cannot contact yourself")

        thread = self._find_or_create(listing.owner_id, principal.user_id, listing.id)
        if thread.status == ThreadStatus.CLOSED:
            raise ThreadClosedException(str(thread.id))

        try:
            message = self._append(thread, principal.user_id, text)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.metrics.increment_messages(automated=False)
        logger.info(
            "Lead message sent",
            extra={"thread_id": str(thread.id), "listing_id": str(listing.id), "status": thread.status.value},
        )
        return thread, message

    def _find_or_create(self, supplier_id: UUID, consumer_id: UUID, listing_id: UUID) -> Thread:
        stmt = (
            select(Thread)
            .where(Thread.supplier_id == supplier_id, Thread.consumer_id == consumer_id)
            .with_for_update()
        )
        thread = self.session.execute(stmt).scalar_one_or_none()
        if thread is not None:
            return thread

        thread = Thread(
            supplier_id=supplier_id,
            consumer_id=consumer_id,
            listing_id=listing_id,
            status=ThreadStatus.PENDING,
            message_count=0,
        )
        self.session.add(thread)
        try:
            self.session.flush()
        except IntegrityError:
            # Concurrent first contact created the pair; use that one
            self.session.rollback()
            thread = self.session.execute(stmt).scalar_one()
        return thread

    def send(self, principal: Optional[Principal], thread_id: UUID, content: str) -> Message:
        """Append a plain message. Never changes the thread status."""
        principal = self._require_principal(principal)
        text = self._clean_content(content)

        try:
            thread = self._load_thread(thread_id, lock=True)
            self.role_in(thread, principal)
            if thread.status == ThreadStatus.CLOSED:
                raise ThreadClosedException(str(thread.id))

            message = self._append(thread, principal.user_id, text)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.metrics.increment_messages(automated=False)
        return message

    def transition(
        self,
        principal: Optional[Principal],
        thread_id: UUID,
        target: ThreadStatus,
    ) -> Thread:
        """Move a thread to `target` and append the matching notice.

        Raises:
            InvalidTransitionException: target not reachable from the current status
            ForbiddenException: reachable, but not by the acting party
        """
        principal = self._require_principal(principal)
        target = ThreadStatus(target)

        try:
            thread = self._load_thread(thread_id, lock=True)
            role = self.role_in(thread, principal)
            current = thread.status

            if target not in reachable_targets(current):
                raise InvalidTransitionException(current.value, target.value)
            if target not in allowed_targets(current, role):
                raise ForbiddenException(
                    f"Only the {'consumer' if role == ThreadRole.SUPPLIER else 'supplier'} "
                    f"can mark this lead as {target.value}"
                )

            thread.status = target
            self._append(thread, principal.user_id, TRANSITION_NOTICES[target], automated=True)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.metrics.increment_transitions(current.value, target.value)
        self.metrics.increment_messages(automated=True)
        logger.info(
            "Lead status changed",
            extra={
                "thread_id": str(thread.id),
                "from_status": current.value,
                "to_status": target.value,
                "actor_role": role.value,
            },
        )
        return thread
