"""
Tests for booking, cancellation and the atomic slot commit.
"""

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from labs_booking.core.errors import NotFoundError, SlotConflictError, ValidationError
from labs_booking.models import (
    BuildProject,
    Consultation,
    ConsultationCreate,
    ConsultationReschedule,
    OutboxKind,
    OutboxMessage,
    ShowcaseBooking,
    ShowcaseBookingCreate,
    SlotReservation,
    WebServiceOrder,
)
from labs_booking.services import booking_service
from labs_booking.services.booking_service import (
    book_consultation,
    book_showcase_meeting,
    cancel_consultation,
    cancel_showcase_booking,
    commit_slot,
    list_showcase_bookings,
    new_record_id,
    reschedule_consultation,
    resolve_client_timezone,
    resolve_meeting_type,
)
from labs_booking.core.config import settings
from labs_booking.services.conflict_service import CONFLICT_MESSAGE
from labs_booking.services.slot_locks import SlotLockRegistry, slot_locks
from labs_booking.services.slot_time import as_utc, assemble_slot


def showcase_request(**overrides) -> ShowcaseBookingCreate:
    data = {
        "token": "T1",
        "client_name": "Jane Doe",
        "client_email": "jane@example.com",
        "date": "2024-07-15",
        "time": "3:30 PM",
    }
    data.update(overrides)
    return ShowcaseBookingCreate(**data)


def consultation_request(**overrides) -> ConsultationCreate:
    data = {
        "client_name": "Sam Client",
        "client_email": "sam@example.com",
        "preferred_date": "2024-07-15",
        "preferred_time": "3:30 PM",
    }
    data.update(overrides)
    return ConsultationCreate(**data)


async def _book_showcase(session_maker, data):
    async with session_maker() as session:
        return await book_showcase_meeting(session, data)


async def _book_consultation(session_maker, data):
    async with session_maker() as session:
        return await book_consultation(session, data)


async def _all(session_maker, model):
    async with session_maker() as session:
        result = await session.execute(select(model))
        return list(result.scalars().all())


class TestBookShowcase:
    def test_books_and_links_project(self, session_maker):
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))

        assert booking.id.startswith("showcase-")
        assert booking.status == "confirmed"
        assert booking.subject_kind == "project"
        assert booking.project_id == "proj-1"
        assert booking.consultation_id == "consultation-1"
        assert booking.appointment_time == "3:30 PM"
        assert booking.meeting_type == "online"
        assert booking.meet_link is None
        # No phone on the request: falls back to the project's phone
        assert booking.client_phone == "+254700000000"

        project = asyncio.run(_all(session_maker, BuildProject))[0]
        assert project.showcase_booking_id == booking.id
        assert project.showcase_scheduled_at is not None
        assert "2024-07-15 at 3:30 PM" in project.showcase_scheduled_note

    def test_same_slot_twice_conflicts(self, session_maker):
        asyncio.run(_book_showcase(session_maker, showcase_request()))
        with pytest.raises(SlotConflictError) as exc_info:
            asyncio.run(_book_showcase(session_maker, showcase_request(client_name="Someone Else")))
        assert exc_info.value.message == CONFLICT_MESSAGE
        assert exc_info.value.status_code == 409
        assert len(asyncio.run(_all(session_maker, ShowcaseBooking))) == 1

    def test_equivalent_label_conflicts(self, session_maker):
        asyncio.run(_book_showcase(session_maker, showcase_request()))
        with pytest.raises(SlotConflictError):
            asyncio.run(_book_showcase(session_maker, showcase_request(time="15:30")))

    def test_queues_side_effects_with_the_booking(self, session_maker):
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        messages = asyncio.run(_all(session_maker, OutboxMessage))
        assert {m.kind for m in messages} == {
            OutboxKind.SHOWCASE_CALENDAR_SYNC,
            OutboxKind.SHOWCASE_CLIENT_CONFIRMATION,
            OutboxKind.SHOWCASE_OWNER_NOTIFICATION,
        }
        assert all(m.ref_id == booking.id for m in messages)

    def test_online_booking_gets_meet_room(self, session_maker, monkeypatch):
        monkeypatch.setattr(settings, "google_meet_room", "https://meet.google.com/abc-defg-hij")
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        assert booking.meet_link == "https://meet.google.com/abc-defg-hij"

    def test_physical_booking_has_no_meet_link(self, session_maker, monkeypatch):
        monkeypatch.setattr(settings, "google_meet_room", "https://meet.google.com/abc-defg-hij")
        booking = asyncio.run(_book_showcase(session_maker, showcase_request(meeting_type="Physical")))
        assert booking.meeting_type == "physical"
        assert booking.meet_link is None

    def test_order_subject(self, session_maker, monkeypatch):
        monkeypatch.setattr(settings, "google_meet_room", "https://meet.google.com/abc-defg-hij")
        booking = asyncio.run(_book_showcase(session_maker, showcase_request(token="O1")))
        assert booking.subject_kind == "order"
        assert booking.order_id == "order-1"
        assert booking.project_id is None
        assert booking.consultation_id == ""

        order = asyncio.run(_all(session_maker, WebServiceOrder))[0]
        assert order.showcase_booking_id == booking.id
        assert order.meeting_link == "https://meet.google.com/abc-defg-hij"

    def test_unknown_token(self, session_maker):
        with pytest.raises(NotFoundError):
            asyncio.run(_book_showcase(session_maker, showcase_request(token="nope")))

    @pytest.mark.parametrize("field", ["token", "client_name", "client_email", "date", "time"])
    def test_missing_fields(self, session_maker, field):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(_book_showcase(session_maker, showcase_request(**{field: "  "})))
        assert field in exc_info.value.message

    def test_malformed_time_writes_nothing(self, session_maker):
        with pytest.raises(ValidationError):
            asyncio.run(_book_showcase(session_maker, showcase_request(time="25:00")))
        assert asyncio.run(_all(session_maker, ShowcaseBooking)) == []
        assert asyncio.run(_all(session_maker, SlotReservation)) == []

    def test_client_timezone_and_country(self, session_maker):
        booking = asyncio.run(
            _book_showcase(
                session_maker,
                showcase_request(client_timezone="America/New_York", client_country="US"),
            )
        )
        assert booking.client_timezone == "America/New_York"
        assert booking.client_country == "US"


class TestSharedGrid:
    def test_consultation_blocks_showcase(self, session_maker):
        asyncio.run(_book_consultation(session_maker, consultation_request()))
        with pytest.raises(SlotConflictError):
            asyncio.run(_book_showcase(session_maker, showcase_request()))

    def test_showcase_blocks_consultation(self, session_maker):
        asyncio.run(_book_showcase(session_maker, showcase_request()))
        with pytest.raises(SlotConflictError):
            asyncio.run(_book_consultation(session_maker, consultation_request(preferred_time="15:30")))

    def test_other_slot_is_free(self, session_maker):
        asyncio.run(_book_showcase(session_maker, showcase_request()))
        consultation = asyncio.run(_book_consultation(session_maker, consultation_request(preferred_time="2:00 PM")))
        assert consultation.status == "pending"
        assert consultation.preferred_date == "2024-07-15"


class TestConcurrency:
    def test_only_one_of_many_concurrent_bookings_wins(self, session_maker):
        async def race():
            attempts = [
                _book_consultation(session_maker, consultation_request(client_email=f"c{i}@example.com"))
                for i in range(5)
            ]
            attempts.append(_book_showcase(session_maker, showcase_request()))
            return await asyncio.gather(*attempts, return_exceptions=True)

        results = asyncio.run(race())

        winners = [r for r in results if isinstance(r, (Consultation, ShowcaseBooking))]
        losers = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(winners) == 1
        assert len(losers) == len(results) - 1
        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [r.slot_key for r in reservations] == ["2024-07-15T15:30"]
        assert reservations[0].holder_id == winners[0].id
        assert len(slot_locks) == 0

    def test_reservation_key_rejects_writers_without_a_shared_lock(self, session_maker, monkeypatch):
        writers = 4
        tz = settings.business_tz
        slot = assemble_slot("2024-07-15", "3:30 PM", tz)
        real_drop = booking_service._drop_stale_reservation

        async def race():
            checked = asyncio.Barrier(writers)

            async def drop_then_wait(session, slot_key):
                await real_drop(session, slot_key)
                # Every writer has passed both checks before any of them commits
                await checked.wait()

            monkeypatch.setattr(booking_service, "_drop_stale_reservation", drop_then_wait)

            async def attempt(i):
                consultation = Consultation(
                    id=f"consultation-race-{i}",
                    client_name="Sam Client",
                    client_email=f"c{i}@example.com",
                    preferred_date=slot.date_str,
                    preferred_time=slot.label,
                )
                async with session_maker() as session:
                    # Its own registry, as a writer in another process would have
                    await commit_slot(session, slot, consultation.id, [consultation], tz, locks=SlotLockRegistry())
                    return consultation.id

            return await asyncio.gather(*(attempt(i) for i in range(writers)), return_exceptions=True)

        results = asyncio.run(race())

        winners = [r for r in results if isinstance(r, str)]
        losers = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(winners) == 1
        assert len(losers) == writers - 1
        assert all(isinstance(e.__cause__, IntegrityError) for e in losers)
        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [(r.slot_key, r.holder_id) for r in reservations] == [("2024-07-15T15:30", winners[0])]
        assert [c.id for c in asyncio.run(_all(session_maker, Consultation))] == winners


class TestStoredInstants:
    def test_columns_keep_the_offset(self):
        columns = [
            ShowcaseBooking.__table__.c.appointment_at,
            ShowcaseBooking.__table__.c.created_at,
            Consultation.__table__.c.created_at,
            BuildProject.__table__.c.showcase_scheduled_at,
            OutboxMessage.__table__.c.next_attempt_at,
            SlotReservation.__table__.c.created_at,
        ]
        assert all(column.type.timezone is True for column in columns)

    def test_booked_instant_reads_back_as_utc(self, session_maker):
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        assert booking.appointment_at == datetime(2024, 7, 15, 12, 30, tzinfo=UTC)

        stored = asyncio.run(_all(session_maker, ShowcaseBooking))[0]
        assert as_utc(stored.appointment_at) == datetime(2024, 7, 15, 12, 30, tzinfo=UTC)
        project = asyncio.run(_all(session_maker, BuildProject))[0]
        assert as_utc(project.showcase_scheduled_at).tzinfo is UTC


async def _reschedule(session_maker, consultation_id, date, time):
    async with session_maker() as session:
        return await reschedule_consultation(
            session, consultation_id, ConsultationReschedule(preferred_date=date, preferred_time=time)
        )


async def _get(session_maker, model, record_id):
    async with session_maker() as session:
        return await session.get(model, record_id)


class TestReschedule:
    def test_moves_to_the_new_slot(self, session_maker):
        original = asyncio.run(_book_consultation(session_maker, consultation_request()))

        moved = asyncio.run(_reschedule(session_maker, original.id, "2024-07-16", "11:00"))
        assert moved.preferred_date == "2024-07-16"
        assert moved.preferred_time == "11:00"
        assert moved.status == "confirmed"
        assert (moved.previous_date, moved.previous_time) == ("2024-07-15", "3:30 PM")

        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [(r.slot_key, r.holder_id) for r in reservations] == [("2024-07-16T11:00", original.id)]
        messages = asyncio.run(_all(session_maker, OutboxMessage))
        assert [m.ref_id for m in messages if m.kind == OutboxKind.CONSULTATION_RESCHEDULED] == [original.id]

        # The old slot is free again
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        assert booking.status == "confirmed"

    def test_same_slot_does_not_conflict_with_itself(self, session_maker):
        original = asyncio.run(_book_consultation(session_maker, consultation_request()))
        moved = asyncio.run(_reschedule(session_maker, original.id, "2024-07-15", "15:30"))
        assert moved.status == "confirmed"
        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [(r.slot_key, r.holder_id) for r in reservations] == [("2024-07-15T15:30", original.id)]

    def test_slot_held_by_another_record_conflicts(self, session_maker):
        original = asyncio.run(_book_consultation(session_maker, consultation_request()))
        asyncio.run(_book_showcase(session_maker, showcase_request(date="2024-07-16", time="11:00 AM")))

        with pytest.raises(SlotConflictError) as exc_info:
            asyncio.run(_reschedule(session_maker, original.id, "2024-07-16", "11:00 AM"))
        assert exc_info.value.message == CONFLICT_MESSAGE

        unchanged = asyncio.run(_get(session_maker, Consultation, original.id))
        assert (unchanged.preferred_date, unchanged.preferred_time) == ("2024-07-15", "3:30 PM")
        assert unchanged.status == "pending"
        assert unchanged.previous_date is None
        holders = {r.slot_key: r.holder_id for r in asyncio.run(_all(session_maker, SlotReservation))}
        assert holders["2024-07-15T15:30"] == original.id
        kinds = [m.kind for m in asyncio.run(_all(session_maker, OutboxMessage))]
        assert OutboxKind.CONSULTATION_RESCHEDULED not in kinds

    def test_cancelled_consultation_is_reactivated(self, session_maker):
        original = asyncio.run(_book_consultation(session_maker, consultation_request()))

        async def cancel():
            async with session_maker() as session:
                await cancel_consultation(session, original.id)
                await session.commit()

        asyncio.run(cancel())
        moved = asyncio.run(_reschedule(session_maker, original.id, "2024-07-16", "9:30 AM"))
        assert moved.status == "confirmed"
        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [(r.slot_key, r.holder_id) for r in reservations] == [("2024-07-16T09:30", original.id)]

    def test_unknown_consultation(self, session_maker):
        with pytest.raises(NotFoundError):
            asyncio.run(_reschedule(session_maker, "consultation-missing", "2024-07-16", "9:30 AM"))

    def test_missing_or_malformed_time(self, session_maker):
        original = asyncio.run(_book_consultation(session_maker, consultation_request()))
        with pytest.raises(ValidationError):
            asyncio.run(_reschedule(session_maker, original.id, "2024-07-16", " "))
        with pytest.raises(ValidationError):
            asyncio.run(_reschedule(session_maker, original.id, "2024-07-16", "late morning"))


class TestCancellation:
    def test_cancel_showcase_frees_slot(self, session_maker):
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))

        async def cancel():
            async with session_maker() as session:
                cancelled = await cancel_showcase_booking(session, booking.id)
                await session.commit()
                return cancelled

        assert asyncio.run(cancel()).status == "cancelled"
        assert asyncio.run(_all(session_maker, SlotReservation)) == []
        consultation = asyncio.run(_book_consultation(session_maker, consultation_request()))
        assert consultation.status == "pending"

    def test_cancel_consultation_frees_slot(self, session_maker):
        consultation = asyncio.run(_book_consultation(session_maker, consultation_request()))

        async def cancel():
            async with session_maker() as session:
                await cancel_consultation(session, consultation.id)
                await session.commit()

        asyncio.run(cancel())
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        assert booking.status == "confirmed"

    def test_cancel_unknown(self, session_maker):
        async def cancel():
            async with session_maker() as session:
                await cancel_showcase_booking(session, "showcase-missing")

        with pytest.raises(NotFoundError):
            asyncio.run(cancel())

    def test_stale_reservation_is_released(self, session_maker):
        async def leave_stale():
            async with session_maker() as session:
                session.add(SlotReservation(slot_key="2024-07-15T15:30", holder_id="consultation-gone"))
                await session.commit()

        asyncio.run(leave_stale())
        booking = asyncio.run(_book_showcase(session_maker, showcase_request()))
        reservations = asyncio.run(_all(session_maker, SlotReservation))
        assert [r.holder_id for r in reservations] == [booking.id]


class TestListing:
    def test_list_excludes_cancelled_on_request(self, session_maker):
        first = asyncio.run(_book_showcase(session_maker, showcase_request()))
        second = asyncio.run(_book_showcase(session_maker, showcase_request(token="O1", time="9:30 AM")))

        async def cancel_and_list():
            async with session_maker() as session:
                await cancel_showcase_booking(session, first.id)
                await session.commit()
                return (
                    await list_showcase_bookings(session),
                    await list_showcase_bookings(session, include_cancelled=False),
                )

        everything, active = asyncio.run(cancel_and_list())
        # Ordered by appointment time
        assert [b.id for b in everything] == [second.id, first.id]
        assert [b.id for b in active] == [second.id]


class TestHelpers:
    def test_new_record_id(self):
        a, b = new_record_id("showcase"), new_record_id("showcase")
        assert a.startswith("showcase-")
        assert a != b

    def test_meeting_type(self):
        assert resolve_meeting_type(None) == "online"
        assert resolve_meeting_type(" PHYSICAL ") == "physical"
        with pytest.raises(ValidationError):
            resolve_meeting_type("hybrid")

    def test_client_timezone_falls_back(self):
        assert resolve_client_timezone("Europe/London") == "Europe/London"
        assert resolve_client_timezone("Mars/Olympus") == "Africa/Nairobi"
        assert resolve_client_timezone(None) == "Africa/Nairobi"
