"""
Resolution of a showcase booking token to the thing being showcased.

A token belongs either to a build project or to a web-services order. It is
resolved once here into a ``BookingSubject`` and everything downstream works
with that instead of probing fields.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.core.errors import NotFoundError
from labs_booking.models.booking import ShowcaseBooking, utc_now
from labs_booking.models.subject import BuildProject, WebServiceOrder


@dataclass
class ProjectSubject:
    project: BuildProject

    kind = "project"

    @property
    def subject_id(self) -> str:
        return self.project.id

    @property
    def business_name(self) -> str:
        return self.project.business_name

    @property
    def contact_name(self) -> str:
        return self.project.contact_name

    @property
    def email(self) -> str:
        return self.project.email

    @property
    def phone(self) -> str:
        return self.project.phone or ""

    @property
    def consultation_id(self) -> str:
        return self.project.consultation_id or ""

    @property
    def tier_name(self) -> str:
        return self.project.tier_name

    @property
    def showcase_booking_id(self) -> str | None:
        return self.project.showcase_booking_id


@dataclass
class OrderSubject:
    order: WebServiceOrder

    kind = "order"

    @property
    def subject_id(self) -> str:
        return self.order.id

    @property
    def _email_name(self) -> str:
        return self.order.email.split("@")[0]

    @property
    def business_name(self) -> str:
        return self.order.business_name or self.order.name or self._email_name

    @property
    def contact_name(self) -> str:
        return self.order.name or self._email_name

    @property
    def email(self) -> str:
        return self.order.email

    @property
    def phone(self) -> str:
        return self.order.phone_number or ""

    @property
    def consultation_id(self) -> str:
        return ""

    @property
    def tier_name(self) -> str:
        return "Web Services"

    @property
    def showcase_booking_id(self) -> str | None:
        return self.order.showcase_booking_id


BookingSubject = ProjectSubject | OrderSubject


async def resolve_subject(session: AsyncSession, token: str) -> BookingSubject:
    """Build projects are searched first, then orders."""
    result = await session.execute(
        select(BuildProject).where(BuildProject.showcase_booking_token == token)
    )
    project = result.scalar_one_or_none()
    if project:
        return ProjectSubject(project)
    result = await session.execute(
        select(WebServiceOrder).where(WebServiceOrder.showcase_booking_token == token)
    )
    order = result.scalar_one_or_none()
    if order:
        return OrderSubject(order)
    raise NotFoundError("Invalid booking token")


def link_booking(
    subject: BookingSubject,
    booking: ShowcaseBooking,
    scheduled_note: str,
    now: datetime | None = None,
) -> BuildProject | WebServiceOrder:
    """Tie the booking back to its subject. Returns the row to add to the session."""
    now = now or utc_now()
    if isinstance(subject, ProjectSubject):
        project = subject.project
        project.showcase_booking_id = booking.id
        project.showcase_scheduled_at = now
        project.showcase_scheduled_note = scheduled_note
        project.updated_at = now
        return project
    order = subject.order
    order.showcase_booking_id = booking.id
    order.meeting_link = booking.meet_link or order.meeting_link or ""
    return order
