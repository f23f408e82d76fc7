import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from zoneinfo import ZoneInfo

from labs_booking.core.config import settings
from labs_booking.core.errors import DownstreamFailure
from labs_booking.models.booking import Consultation, MeetingType, ShowcaseBooking
from labs_booking.services.calendar_invite import build_ics, google_calendar_link
from labs_booking.services.slot_time import ClockTime, as_utc, format_time_label

logger = logging.getLogger(__name__)

MEETING_AGENDA = (
    "Walkthrough of your website",
    "Workflows and how to use the system",
    "Answer any questions you may have",
)


@dataclass
class EmailAttachment:
    filename: str
    content: str
    subtype: str = "plain"
    params: dict[str, str] = field(default_factory=dict)


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    attachments: list[EmailAttachment] | None = None,
    cc: list[str] | None = None,
) -> None:
    """Send email via SMTP (blocking). Raises DownstreamFailure so the outbox can retry."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send to %s", to_email)
        return
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    if cc:
        msg["Cc"] = ", ".join(cc)
    body = MIMEMultipart("alternative")
    body.attach(MIMEText(html_body, "html", "utf-8"))
    msg.attach(body)
    for attachment in attachments or []:
        part = MIMEText(attachment.content, attachment.subtype, "utf-8")
        for key, value in attachment.params.items():
            part.set_param(key, value)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email, *(cc or [])], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise DownstreamFailure(f"Failed to send email to {to_email}: {e}") from e
    logger.info("Email sent to %s", to_email)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def format_meeting_date(instant: datetime, tz: ZoneInfo) -> str:
    """e.g. ``Monday, July 15, 2024`` in ``tz``."""
    local = as_utc(instant).astimezone(tz)
    return f"{local:%A}, {local:%B} {local.day}, {local.year}"


def format_meeting_time(instant: datetime, tz: ZoneInfo) -> str:
    local = as_utc(instant).astimezone(tz)
    return format_time_label(ClockTime(local.hour, local.minute))


def time_gated_link(booking: ShowcaseBooking) -> str | None:
    if booking.meeting_type != MeetingType.ONLINE.value or not booking.meet_link:
        return None
    return f"{settings.public_base_url}/labs/showcase-meet/{booking.id}"


def meeting_location(booking: ShowcaseBooking) -> str:
    if booking.meeting_type == MeetingType.PHYSICAL.value:
        return settings.studio_location
    return "Online Meeting"


def _showcase_description(booking: ShowcaseBooking, business_name: str) -> str:
    lines = [f"Showcase Meeting for {business_name}", "", "During this meeting, we'll cover:"]
    lines.extend(f"• {item}" for item in MEETING_AGENDA)
    link = time_gated_link(booking)
    if link:
        lines.extend(["", f"Meeting Link: {link}", "", "Note: This link will only work during your scheduled time slot."])
    lines.extend(["", f"If you need to reschedule, please contact us at {settings.contact_email}"])
    return "\n".join(lines)


def _card(title: str, inner_html: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:20px;font-family:Arial,sans-serif;line-height:1.6;color:#333;background:#FDF9F4;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0">
    <tr>
      <td align="center">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:600px;background:#FFFFFF;border-radius:8px;box-shadow:0 2px 4px rgba(0,0,0,0.1);">
          <tr>
            <td style="padding:32px;">
              <h1 style="color:#7C4B31;margin-top:0;">{title}</h1>
              {inner_html}
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def build_showcase_confirmation_html(booking: ShowcaseBooking, business_name: str) -> str:
    tz = settings.business_tz
    date_str = format_meeting_date(booking.appointment_at, tz)
    time_str = format_meeting_time(booking.appointment_at, tz)
    local_note = ""
    if booking.client_timezone and booking.client_timezone != settings.business_timezone:
        try:
            client_tz = ZoneInfo(booking.client_timezone)
        except (KeyError, ValueError):
            client_tz = None
        if client_tz is not None:
            client_time = format_meeting_time(booking.appointment_at, client_tz)
            local_note = (
                '<br><span style="font-size:13px;color:#6B4A3B;">'
                f"Your local time: {client_time} ({_html_escape(booking.client_timezone.replace('_', ' '))})<br>"
                f"Nairobi time: {time_str} ({settings.business_timezone})</span>"
            )

    link = time_gated_link(booking)
    if booking.meeting_type == MeetingType.PHYSICAL.value:
        location_html = f"<p><strong>Location:</strong> {_html_escape(settings.studio_location)}</p>"
    elif link:
        location_html = (
            "<p><strong>Location:</strong> Online Meeting</p>"
            '<p style="background:#E3F2FD;border-radius:6px;padding:16px;">'
            f'<strong>Your Secure Meeting Link:</strong><br><a href="{link}">{link}</a><br>'
            '<span style="font-size:12px;color:#616161;">This link will only work during your scheduled time slot.</span></p>'
        )
    else:
        location_html = "<p><strong>Location:</strong> Online (meeting link will be sent separately)</p>"

    start = as_utc(booking.appointment_at)
    calendar_url = google_calendar_link(
        title=f"Showcase Meeting - {business_name}",
        start=start,
        end=start + timedelta(minutes=settings.meeting_duration_minutes),
        details=_showcase_description(booking, business_name),
        location=f"Online Meeting: {link}" if link else meeting_location(booking),
    )
    agenda = "".join(f"<li>{item}</li>" for item in MEETING_AGENDA)
    meeting_kind = "Online Meeting" if booking.meeting_type == MeetingType.ONLINE.value else "Physical Meeting"
    inner = f"""
              <p>Hello {_html_escape(booking.client_name)},</p>
              <p>Your showcase meeting has been successfully scheduled!</p>
              <div style="background:#F3E6DC;border-radius:6px;padding:20px;margin:24px 0;">
                <h2 style="color:#7C4B31;margin-top:0;">Meeting Details</h2>
                <p><strong>Date:</strong> {date_str}</p>
                <p><strong>Time:</strong> {time_str}{local_note}</p>
                <p><strong>Type:</strong> {meeting_kind}</p>
                {location_html}
              </div>
              <p style="text-align:center;"><a href="{_html_escape(calendar_url)}" style="display:inline-block;background:#4285F4;color:#FFFFFF;text-decoration:none;padding:12px 24px;border-radius:6px;font-weight:600;">Add to Google Calendar</a></p>
              <p style="font-size:14px;color:#666;">We've attached a calendar event file (.ics) to this email.</p>
              <p>During this meeting, we'll cover:</p>
              <ul>{agenda}</ul>
              <p style="margin-top:32px;padding-top:24px;border-top:1px solid #E0E0E0;font-size:14px;color:#666;">If you need to reschedule, please contact us at {settings.contact_email}</p>
              <p style="font-size:14px;color:#666;">Best regards,<br>The {settings.site_name} Team</p>
"""
    return _card("Showcase Meeting Confirmed!", inner)


def build_showcase_invite(booking: ShowcaseBooking, business_name: str, now: datetime | None = None) -> EmailAttachment:
    start = as_utc(booking.appointment_at)
    content = build_ics(
        uid=f"showcase-{booking.id}@lashdiary.co.ke",
        start=start,
        end=start + timedelta(minutes=settings.meeting_duration_minutes),
        summary=f"Showcase Meeting - {business_name}",
        description=_showcase_description(booking, business_name),
        location=meeting_location(booking),
        organizer_name=settings.site_name,
        organizer_email=settings.business_notification_email,
        attendee_name=booking.client_name,
        attendee_email=booking.client_email,
        now=now,
    )
    return EmailAttachment(
        filename="showcase-meeting.ics",
        content=content,
        subtype="calendar",
        params={"method": "REQUEST"},
    )


def send_showcase_confirmation_email(booking: ShowcaseBooking, business_name: str) -> None:
    tz = settings.business_tz
    subject = (
        f"Showcase Meeting Confirmed - {format_meeting_date(booking.appointment_at, tz)} "
        f"at {format_meeting_time(booking.appointment_at, tz)}"
    )
    html = build_showcase_confirmation_html(booking, business_name)
    send_email(booking.client_email, subject, html, [build_showcase_invite(booking, business_name)])


def build_showcase_owner_html(booking: ShowcaseBooking, business_name: str, phone: str) -> str:
    tz = settings.business_tz
    meeting_kind = "Online Meeting" if booking.meeting_type == MeetingType.ONLINE.value else "Physical Meeting"
    inner = f"""
              <p><strong>Client:</strong> {_html_escape(booking.client_name)}</p>
              <p><strong>Business:</strong> {_html_escape(business_name)}</p>
              <p><strong>Email:</strong> {_html_escape(booking.client_email)}</p>
              <p><strong>Phone:</strong> {_html_escape(phone or 'N/A')}</p>
              <div style="background:#F3E6DC;border-radius:6px;padding:20px;margin:24px 0;">
                <h2 style="color:#7C4B31;margin-top:0;">Meeting Details</h2>
                <p><strong>Date:</strong> {format_meeting_date(booking.appointment_at, tz)}</p>
                <p><strong>Time:</strong> {format_meeting_time(booking.appointment_at, tz)}</p>
                <p><strong>Type:</strong> {meeting_kind}</p>
                <p><strong>Booking ID:</strong> {booking.id}</p>
              </div>
"""
    return _card("New Showcase Meeting Booked", inner)


def send_showcase_owner_notification_email(booking: ShowcaseBooking, business_name: str) -> None:
    subject = f"New Showcase Meeting: {booking.client_name} - {business_name}"
    html = build_showcase_owner_html(booking, business_name, booking.client_phone)
    send_email(settings.business_notification_email, subject, html)


def build_consultation_html(consultation: Consultation, for_owner: bool) -> str:
    rows = f"""
                <p><strong>Date:</strong> {_html_escape(consultation.preferred_date)}</p>
                <p><strong>Time:</strong> {_html_escape(consultation.preferred_time)} ({settings.business_timezone})</p>
                <p><strong>Type:</strong> {consultation.meeting_type.title()}</p>
"""
    if for_owner:
        inner = f"""
              <p><strong>Client:</strong> {_html_escape(consultation.client_name)}</p>
              <p><strong>Business:</strong> {_html_escape(consultation.business_name or 'N/A')}</p>
              <p><strong>Email:</strong> {_html_escape(consultation.client_email)}</p>
              <p><strong>Phone:</strong> {_html_escape(consultation.client_phone or 'N/A')}</p>
              <div style="background:#F3E6DC;border-radius:6px;padding:20px;margin:24px 0;">{rows}</div>
"""
        return _card("New Consultation Request", inner)
    inner = f"""
              <p>Hello {_html_escape(consultation.client_name)},</p>
              <p>We've received your consultation request. We'll confirm it shortly.</p>
              <div style="background:#F3E6DC;border-radius:6px;padding:20px;margin:24px 0;">{rows}</div>
              <p style="font-size:14px;color:#666;">Best regards,<br>The {settings.site_name} Team</p>
"""
    return _card("Consultation Request Received", inner)


def send_consultation_received_email(consultation: Consultation) -> None:
    subject = f"{settings.site_name} - Consultation Request Received"
    send_email(consultation.client_email, subject, build_consultation_html(consultation, for_owner=False))


def send_consultation_owner_notification_email(consultation: Consultation) -> None:
    subject = f"New Consultation: {consultation.client_name} - {consultation.preferred_date} {consultation.preferred_time}"
    send_email(settings.business_notification_email, subject, build_consultation_html(consultation, for_owner=True))


def build_consultation_rescheduled_html(consultation: Consultation) -> str:
    previous = "N/A"
    if consultation.previous_date and consultation.previous_time:
        previous = f"{_html_escape(consultation.previous_date)} at {_html_escape(consultation.previous_time)}"
    inner = f"""
              <p>Hello {_html_escape(consultation.client_name)},</p>
              <p>Your consultation has been successfully rescheduled!</p>
              <div style="background:#F3E6DC;border-radius:6px;padding:20px;margin:24px 0;">
                <p><strong>Previous Schedule:</strong> {previous}</p>
              </div>
              <div style="background:#E8F5E9;border-radius:6px;padding:20px;margin:24px 0;">
                <p><strong>New Schedule:</strong> {_html_escape(consultation.preferred_date)} at {_html_escape(consultation.preferred_time)} ({settings.business_timezone})</p>
                <p><strong>Type:</strong> {consultation.meeting_type.title()}</p>
              </div>
              <p style="font-size:14px;color:#666;">No additional payment is required for the rescheduled appointment.</p>
              <p style="font-size:14px;color:#666;">Best regards,<br>The {settings.site_name} Team</p>
"""
    return _card("Consultation Rescheduled", inner)


def send_consultation_rescheduled_email(consultation: Consultation) -> None:
    subject = f"Consultation Rescheduled - {consultation.preferred_date} {consultation.preferred_time}"
    html = build_consultation_rescheduled_html(consultation)
    send_email(consultation.client_email, subject, html, cc=[settings.business_notification_email])
