from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./labs_booking.db"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Public site, used for time-gated meeting links
    base_url: str = "https://lashdiary.co.ke"

    # Slot grid. All bookable labels share one grid for consultations and showcase meetings.
    business_timezone: str = "Africa/Nairobi"
    slot_labels: str = "9:30 AM,11:00 AM,12:30 PM,2:00 PM,3:30 PM"
    available_weekdays: str = "0,1,2,3,4"  # Monday=0
    blocked_dates: str = ""
    meeting_duration_minutes: int = 60
    join_window_before_minutes: int = 15

    # Meetings
    google_meet_room: str = ""
    studio_location: str = "LashDiary Studio, Nairobi, Kenya"
    calendar_book_url: str = ""
    calendar_timeout_seconds: float = 10.0

    # Admin routes
    admin_api_key: str = ""

    # Outbox for calendar sync and e-mails
    outbox_max_attempts: int = 6
    outbox_base_delay_seconds: int = 60
    outbox_poll_interval_seconds: int = 300
    outbox_retention_days: int = 14

    # Env
    env: str = "development"

    # Email (Zoho SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    # Below the outbox claim lease, so a hung send is never claimed twice
    smtp_timeout_seconds: float = 30.0
    from_email: str = ""
    from_name: str = "LashDiary Labs"
    business_notification_email: str = "hello@lashdiary.co.ke"
    site_name: str = "LashDiary Labs"
    contact_email: str = "hello@lashdiary.co.ke"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def slot_labels_list(self) -> list[str]:
        return [s.strip() for s in self.slot_labels.split(",") if s.strip()]

    @property
    def available_weekdays_set(self) -> set[int]:
        return {int(d) for d in self.available_weekdays.split(",") if d.strip()}

    @property
    def blocked_dates_set(self) -> set[str]:
        return {d.strip() for d in self.blocked_dates.split(",") if d.strip()}

    @property
    def business_tz(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)

    @property
    def public_base_url(self) -> str:
        """Base URL without trailing slash, with a scheme."""
        raw = self.base_url.strip().rstrip("/")
        if raw.startswith(("http://", "https://")):
            return raw
        return f"https://{raw}"

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
