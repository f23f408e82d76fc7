from datetime import UTC, datetime
from urllib.parse import urlencode


def _ics_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def build_ics(
    *,
    uid: str,
    start: datetime,
    end: datetime,
    summary: str,
    description: str,
    location: str,
    organizer_name: str,
    organizer_email: str,
    attendee_name: str,
    attendee_email: str,
    reminder_minutes: int = 15,
    now: datetime | None = None,
) -> str:
    """Single-event VCALENDAR (METHOD:REQUEST) with a display reminder."""
    stamp = now or datetime.now(UTC)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//LashDiary Labs//Showcase Booking//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_ics_timestamp(stamp)}",
        f"DTSTART:{_ics_timestamp(start)}",
        f"DTEND:{_ics_timestamp(end)}",
        f"SUMMARY:{_ics_escape(summary)}",
        f"DESCRIPTION:{_ics_escape(description)}",
        f"LOCATION:{_ics_escape(location)}",
        f"ORGANIZER;CN={organizer_name}:mailto:{organizer_email}",
        f"ATTENDEE;CN={attendee_name};RSVP=TRUE:mailto:{attendee_email}",
        "STATUS:CONFIRMED",
        "SEQUENCE:0",
        "BEGIN:VALARM",
        f"TRIGGER:-PT{reminder_minutes}M",
        "ACTION:DISPLAY",
        f"DESCRIPTION:Reminder: {_ics_escape(summary)} in {reminder_minutes} minutes",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


def google_calendar_link(
    *, title: str, start: datetime, end: datetime, details: str, location: str
) -> str:
    params = {
        "action": "TEMPLATE",
        "text": title,
        "dates": f"{_ics_timestamp(start)}/{_ics_timestamp(end)}",
        "details": details,
        "location": location,
    }
    return f"https://www.google.com/calendar/render?{urlencode(params)}"
