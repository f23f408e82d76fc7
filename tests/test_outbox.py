"""
Tests for outbox dispatch: delivery, retry with backoff, giving up, cleanup.
"""

import asyncio
from datetime import timedelta

from sqlalchemy import select

from labs_booking.core.config import settings
from labs_booking.core.errors import DownstreamFailure
from labs_booking.models import OutboxKind, OutboxMessage, ShowcaseBookingCreate, utc_now
from labs_booking.services import calendar_service, email_service
from labs_booking.services.booking_service import book_showcase_meeting, cancel_showcase_booking
from labs_booking.services.outbox_service import (
    MAX_BACKOFF,
    backoff_delay,
    delete_delivered_older_than,
    dispatch_due,
    new_message,
)
from labs_booking.services.slot_time import as_utc


async def _add(session_maker, *messages):
    async with session_maker() as session:
        for m in messages:
            session.add(m)
        await session.commit()


async def _messages(session_maker):
    async with session_maker() as session:
        result = await session.execute(select(OutboxMessage).order_by(OutboxMessage.id))
        return list(result.scalars().all())


async def _book(session_maker):
    async with session_maker() as session:
        return await book_showcase_meeting(
            session,
            ShowcaseBookingCreate(
                token="T1",
                client_name="Jane Doe",
                client_email="jane@example.com",
                date="2024-07-15",
                time="3:30 PM",
            ),
        )


def soon():
    return utc_now() + timedelta(seconds=1)


class TestBackoff:
    def test_doubles_and_caps(self, monkeypatch):
        monkeypatch.setattr(settings, "outbox_base_delay_seconds", 60)
        assert backoff_delay(1) == timedelta(seconds=60)
        assert backoff_delay(2) == timedelta(seconds=120)
        assert backoff_delay(4) == timedelta(seconds=480)
        assert backoff_delay(30) == MAX_BACKOFF


class TestDispatch:
    def test_delivers_due_messages(self, session_maker):
        calls = []

        async def handler(session, ref_id):
            calls.append(ref_id)

        asyncio.run(_add(session_maker, new_message("test.kind", "a"), new_message("test.kind", "b")))
        delivered = asyncio.run(dispatch_due(session_maker, now=soon(), handlers={"test.kind": handler}))

        assert delivered == 2
        assert calls == ["a", "b"]
        messages = asyncio.run(_messages(session_maker))
        assert all(m.delivered_at is not None and m.attempts == 1 for m in messages)

        # Delivered messages are not run again
        assert asyncio.run(dispatch_due(session_maker, now=soon(), handlers={"test.kind": handler})) == 0
        assert calls == ["a", "b"]

    def test_failure_is_retried_after_backoff(self, session_maker, monkeypatch):
        monkeypatch.setattr(settings, "outbox_base_delay_seconds", 60)
        attempts = []

        async def flaky(session, ref_id):
            attempts.append(ref_id)
            if len(attempts) == 1:
                raise DownstreamFailure("SMTP down")

        handlers = {"test.kind": flaky}
        asyncio.run(_add(session_maker, new_message("test.kind", "a")))
        now = soon()

        assert asyncio.run(dispatch_due(session_maker, now=now, handlers=handlers)) == 0
        msg = asyncio.run(_messages(session_maker))[0]
        assert msg.attempts == 1
        assert msg.delivered_at is None
        assert msg.failed_at is None
        assert "SMTP down" in msg.last_error
        assert as_utc(msg.next_attempt_at) == now + timedelta(seconds=60)

        # Not due yet
        assert asyncio.run(dispatch_due(session_maker, now=now + timedelta(seconds=30), handlers=handlers)) == 0
        assert len(attempts) == 1

        assert asyncio.run(dispatch_due(session_maker, now=now + timedelta(seconds=61), handlers=handlers)) == 1
        msg = asyncio.run(_messages(session_maker))[0]
        assert msg.attempts == 2
        assert msg.delivered_at is not None
        assert msg.last_error is None

    def test_gives_up_after_max_attempts(self, session_maker, monkeypatch):
        monkeypatch.setattr(settings, "outbox_max_attempts", 1)

        async def broken(session, ref_id):
            raise RuntimeError("boom")

        asyncio.run(_add(session_maker, new_message("test.kind", "a")))
        assert asyncio.run(dispatch_due(session_maker, now=soon(), handlers={"test.kind": broken})) == 0
        msg = asyncio.run(_messages(session_maker))[0]
        assert msg.failed_at is not None
        assert msg.last_error == "RuntimeError: boom"

        # Abandoned messages stay abandoned
        later = soon() + timedelta(days=1)
        assert asyncio.run(dispatch_due(session_maker, now=later, handlers={"test.kind": broken})) == 0
        assert asyncio.run(_messages(session_maker))[0].attempts == 1

    def test_unknown_kind_fails_immediately(self, session_maker):
        asyncio.run(_add(session_maker, new_message("no.such.kind", "a")))
        assert asyncio.run(dispatch_due(session_maker, now=soon(), handlers={})) == 0
        msg = asyncio.run(_messages(session_maker))[0]
        assert msg.failed_at is not None
        assert "no.such.kind" in msg.last_error


class TestCleanup:
    def test_deletes_only_old_finished_messages(self, session_maker):
        old = utc_now() - timedelta(days=30)
        asyncio.run(
            _add(
                session_maker,
                OutboxMessage(kind="k", ref_id="old-delivered", created_at=old, delivered_at=old),
                OutboxMessage(kind="k", ref_id="old-failed", created_at=old, failed_at=old),
                OutboxMessage(kind="k", ref_id="old-pending", created_at=old),
                OutboxMessage(kind="k", ref_id="new-delivered", delivered_at=utc_now()),
            )
        )

        async def cleanup():
            async with session_maker() as session:
                n = await delete_delivered_older_than(session, 14)
                await session.commit()
                return n

        assert asyncio.run(cleanup()) == 2
        assert sorted(m.ref_id for m in asyncio.run(_messages(session_maker))) == ["new-delivered", "old-pending"]


class TestBookingSideEffects:
    def test_calendar_and_emails_after_booking(self, session_maker, monkeypatch):
        calendar_calls = []
        sent = []

        async def fake_book_event(**kwargs):
            calendar_calls.append(kwargs)

        def fake_send_email(to_email, subject, html_body, attachments=None, cc=None):
            sent.append((to_email, subject, attachments or []))

        monkeypatch.setattr(calendar_service, "book_event", fake_book_event)
        monkeypatch.setattr(email_service, "send_email", fake_send_email)

        booking = asyncio.run(_book(session_maker))
        assert asyncio.run(dispatch_due(session_maker, now=soon())) == 3

        assert len(calendar_calls) == 1
        call = calendar_calls[0]
        assert call["booking_id"] == booking.id
        assert call["service"] == "Showcase Meeting - Acme Salon"
        assert call["date"] == "2024-07-15"
        assert call["starts_at"].isoformat() == "2024-07-15T15:30:00+03:00"
        assert call["location"] == "Online Meeting"

        recipients = sorted(to for to, _, _ in sent)
        assert recipients == sorted(["jane@example.com", settings.business_notification_email])
        client_mail = next(m for m in sent if m[0] == "jane@example.com")
        assert client_mail[1] == "Showcase Meeting Confirmed - Monday, July 15, 2024 at 3:30 PM"
        assert [a.filename for a in client_mail[2]] == ["showcase-meeting.ics"]

    def test_calendar_failure_does_not_touch_booking(self, session_maker, monkeypatch):
        async def failing_book_event(**kwargs):
            raise DownstreamFailure("calendar unavailable")

        monkeypatch.setattr(calendar_service, "book_event", failing_book_event)
        monkeypatch.setattr(email_service, "send_email", lambda *a, **kw: None)

        booking = asyncio.run(_book(session_maker))
        assert asyncio.run(dispatch_due(session_maker, now=soon())) == 2
        pending = [m for m in asyncio.run(_messages(session_maker)) if m.delivered_at is None]
        assert [m.kind for m in pending] == [OutboxKind.SHOWCASE_CALENDAR_SYNC]
        assert booking.status == "confirmed"

    def test_cancelled_booking_sends_nothing(self, session_maker, monkeypatch):
        sent = []
        monkeypatch.setattr(email_service, "send_email", lambda to, *a, **kw: sent.append(to))

        booking = asyncio.run(_book(session_maker))

        async def cancel():
            async with session_maker() as session:
                await cancel_showcase_booking(session, booking.id)
                await session.commit()

        asyncio.run(cancel())
        assert asyncio.run(dispatch_due(session_maker, now=soon())) == 3
        assert sent == []
