"""
Tests for the lead thread engine.
"""
import uuid

import pytest

from vendorhub.api.middleware.error_handler import (
    BadRequestException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ThreadClosedException,
    UnauthorizedException,
)
from vendorhub.models.threads import Message, ThreadStatus
from vendorhub.models.users import UserRole
from vendorhub.services.thread_service import (
    TRANSITION_NOTICES,
    ThreadRole,
    ThreadService,
    allowed_targets,
    reachable_targets,
)


@pytest.fixture
def service(db_session, metrics):
    return ThreadService(db_session, metrics)


@pytest.fixture
def opened(service, consumer, listing):
    thread, _ = service.open_thread(consumer, listing.id, "Hi! Are you free on June 14?")
    return thread


# ===== Transition table =====

@pytest.mark.unit
def test_transition_table():
    assert allowed_targets(ThreadStatus.PENDING, ThreadRole.SUPPLIER) == {
        ThreadStatus.ACCEPTED,
        ThreadStatus.DECLINED,
    }
    assert allowed_targets(ThreadStatus.PENDING, ThreadRole.CONSUMER) == {ThreadStatus.CLOSED}
    assert allowed_targets(ThreadStatus.ACCEPTED, ThreadRole.SUPPLIER) == frozenset()
    assert reachable_targets(ThreadStatus.CLOSED) == frozenset()


# ===== Opening =====

@pytest.mark.unit
def test_first_message_creates_pending_thread(service, consumer, supplier, listing):
    thread, message = service.open_thread(consumer, listing.id, "  Hello there  ")

    assert thread.status == ThreadStatus.PENDING
    assert thread.supplier_id == supplier.user_id
    assert thread.consumer_id == consumer.user_id
    assert thread.listing_id == listing.id
    assert message.content == "Hello there"
    assert message.sequence == 1
    assert message.receiver_id == supplier.user_id
    assert message.is_automated is False


@pytest.mark.unit
def test_second_inquiry_reuses_thread(service, consumer, supplier, make_listing):
    first = make_listing(supplier, name="Studio A")
    second = make_listing(supplier, name="Studio B")

    thread_a, _ = service.open_thread(consumer, first.id, "About studio A")
    thread_b, message = service.open_thread(consumer, second.id, "And studio B?")

    assert thread_a.id == thread_b.id
    assert message.sequence == 2
    assert len(service.list_threads(consumer)) == 1


@pytest.mark.unit
def test_supplier_cannot_open_thread(service, supplier, make_user, make_listing):
    other_supplier = make_user(UserRole.SUPPLIER)
    listing = make_listing(other_supplier)

    with pytest.raises(ForbiddenException):
        service.open_thread(supplier, listing.id, "Hello")


@pytest.mark.unit
def test_open_thread_unknown_listing(service, consumer):
    with pytest.raises(NotFoundException):
        service.open_thread(consumer, uuid.uuid4(), "Hello")


@pytest.mark.unit
def test_empty_message_rejected(service, consumer, listing):
    with pytest.raises(BadRequestException):
        service.open_thread(consumer, listing.id, "   ")


@pytest.mark.unit
def test_unauthenticated_caller(service, listing):
    with pytest.raises(UnauthorizedException):
        service.open_thread(None, listing.id, "Hello")


# ===== Sending =====

@pytest.mark.unit
def test_send_does_not_change_status(service, opened, supplier, consumer):
    service.send(supplier, opened.id, "Thanks, let me check")
    service.send(consumer, opened.id, "Great")

    thread = service.get_thread(consumer, opened.id)
    assert thread.status == ThreadStatus.PENDING
    assert thread.message_count == 3
    assert thread.last_message_preview == "Great"


@pytest.mark.unit
def test_outsider_cannot_read_or_send(service, opened, make_user):
    outsider = make_user()

    with pytest.raises(ForbiddenException):
        service.send(outsider, opened.id, "Hi")
    with pytest.raises(ForbiddenException):
        service.list_messages(outsider, opened.id)


@pytest.mark.unit
def test_messages_returned_in_creation_order(service, opened, supplier, consumer):
    service.send(supplier, opened.id, "one")
    service.transition(supplier, opened.id, ThreadStatus.ACCEPTED)
    service.send(consumer, opened.id, "two")

    messages = service.list_messages(consumer, opened.id)

    assert [m.sequence for m in messages] == [1, 2, 3, 4]
    assert [m.content for m in messages][-1] == "two"
    timestamps = [m.created_at for m in messages]
    assert timestamps == sorted(timestamps)


# ===== Transitions =====

@pytest.mark.unit
def test_supplier_accepts_and_notice_is_appended(service, opened, supplier, consumer, metrics):
    thread = service.transition(supplier, opened.id, ThreadStatus.ACCEPTED)

    assert thread.status == ThreadStatus.ACCEPTED
    messages = service.list_messages(consumer, opened.id)
    notice = messages[-1]
    assert notice.content == TRANSITION_NOTICES[ThreadStatus.ACCEPTED]
    assert notice.is_automated is True
    assert notice.sender_id == supplier.user_id
    assert metrics.get_value(
        "thread_transitions_total", from_status="pending", to_status="accepted"
    ) == 1


@pytest.mark.unit
def test_supplier_declines(service, opened, supplier, consumer):
    thread = service.transition(supplier, opened.id, ThreadStatus.DECLINED)

    assert thread.status == ThreadStatus.DECLINED
    assert service.list_messages(consumer, opened.id)[-1].content == TRANSITION_NOTICES[ThreadStatus.DECLINED]


@pytest.mark.unit
def test_consumer_cannot_accept(service, opened, consumer):
    with pytest.raises(ForbiddenException):
        service.transition(consumer, opened.id, ThreadStatus.ACCEPTED)


@pytest.mark.unit
def test_supplier_cannot_close(service, opened, supplier):
    with pytest.raises(ForbiddenException):
        service.transition(supplier, opened.id, ThreadStatus.CLOSED)


@pytest.mark.unit
def test_unreachable_target_is_invalid_transition(service, opened, supplier):
    service.transition(supplier, opened.id, ThreadStatus.ACCEPTED)

    with pytest.raises(InvalidTransitionException):
        service.transition(supplier, opened.id, ThreadStatus.DECLINED)


@pytest.mark.unit
def test_rejected_transition_leaves_thread_untouched(service, opened, consumer):
    with pytest.raises(ForbiddenException):
        service.transition(consumer, opened.id, ThreadStatus.ACCEPTED)

    thread = service.get_thread(consumer, opened.id)
    assert thread.status == ThreadStatus.PENDING
    assert len(service.list_messages(consumer, opened.id)) == 1


@pytest.mark.unit
def test_closed_thread_is_terminal(service, opened, supplier, consumer):
    service.transition(supplier, opened.id, ThreadStatus.ACCEPTED)
    service.transition(consumer, opened.id, ThreadStatus.CLOSED)

    with pytest.raises(ThreadClosedException):
        service.send(supplier, opened.id, "Still there?")
    with pytest.raises(ThreadClosedException):
        service.send(consumer, opened.id, "Hello again")
    for target in ThreadStatus:
        with pytest.raises(InvalidTransitionException):
            service.transition(consumer, opened.id, target)

    messages = service.list_messages(consumer, opened.id)
    assert messages[-1].content == TRANSITION_NOTICES[ThreadStatus.CLOSED]
    assert service.session.query(Message).count() == 3


@pytest.mark.unit
def test_reopening_closed_thread_is_rejected(service, opened, consumer, listing):
    service.transition(consumer, opened.id, ThreadStatus.CLOSED)

    with pytest.raises(ThreadClosedException):
        service.open_thread(consumer, listing.id, "One more question")


@pytest.mark.unit
def test_declined_thread_still_accepts_messages(service, opened, supplier, consumer):
    service.transition(supplier, opened.id, ThreadStatus.DECLINED)

    message = service.send(consumer, opened.id, "Maybe another date?")

    assert message.sequence == 3


# ===== Inbox =====

@pytest.mark.unit
def test_inbox_summary_per_role(service, opened, supplier, consumer):
    service.send(supplier, opened.id, "Happy to help")

    supplier_inbox = service.list_threads(supplier)
    consumer_inbox = service.list_threads(consumer)

    assert len(supplier_inbox) == 1
    assert supplier_inbox[0].counterpart_id == consumer.user_id
    assert supplier_inbox[0].role == ThreadRole.SUPPLIER
    assert consumer_inbox[0].counterpart_id == supplier.user_id
    assert consumer_inbox[0].last_message_snippet == "Happy to help"


@pytest.mark.unit
def test_inbox_status_filter(service, opened, supplier):
    service.transition(supplier, opened.id, ThreadStatus.ACCEPTED)

    assert service.list_threads(supplier, ThreadStatus.PENDING) == []
    assert len(service.list_threads(supplier, ThreadStatus.ACCEPTED)) == 1
