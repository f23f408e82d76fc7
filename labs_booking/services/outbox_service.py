"""
Outbox of best-effort side effects.

Messages are written in the same transaction as the booking they belong to,
so a committed booking always has its calendar sync and e-mails queued.
Dispatch happens after the request and on a periodic loop; a failed handler
is retried with exponential backoff until ``outbox_max_attempts`` is reached.
Failures are logged and never reach the client that booked.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labs_booking.core.config import settings
from labs_booking.models.booking import utc_now
from labs_booking.models.outbox import OutboxMessage
from labs_booking.services.notification_service import HANDLERS, Handler

logger = logging.getLogger(__name__)

MAX_BACKOFF = timedelta(hours=6)
CLAIM_LEASE = timedelta(minutes=5)


def new_message(kind: str, ref_id: str) -> OutboxMessage:
    return OutboxMessage(kind=kind, ref_id=ref_id)


def backoff_delay(attempts: int) -> timedelta:
    """Delay before the next try after ``attempts`` failed ones."""
    delay = timedelta(seconds=settings.outbox_base_delay_seconds * 2 ** max(attempts - 1, 0))
    return min(delay, MAX_BACKOFF)


async def _claim(session: AsyncSession, msg: OutboxMessage, now: datetime) -> bool:
    """Push the message's next attempt out by a lease, only if no other dispatcher did first."""
    result = await session.execute(
        update(OutboxMessage)
        .where(
            OutboxMessage.id == msg.id,
            OutboxMessage.next_attempt_at == msg.next_attempt_at,
            OutboxMessage.delivered_at.is_(None),
        )
        .values(next_attempt_at=now + CLAIM_LEASE)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


async def dispatch_due(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    now: datetime | None = None,
    limit: int = 50,
    handlers: Mapping[str, Handler] = HANDLERS,
) -> int:
    """Run every due message once. Returns the number delivered."""
    now = now or utc_now()
    delivered = 0
    async with session_maker() as session:
        result = await session.execute(
            select(OutboxMessage)
            .where(
                OutboxMessage.delivered_at.is_(None),
                OutboxMessage.failed_at.is_(None),
                OutboxMessage.next_attempt_at <= now,
            )
            .order_by(OutboxMessage.id)
            .limit(limit)
        )
        messages = list(result.scalars().all())
        for msg in messages:
            if not await _claim(session, msg, now):
                continue
            handler = handlers.get(msg.kind)
            msg.attempts += 1
            if handler is None:
                logger.error("Outbox: no handler for kind %s (message %s)", msg.kind, msg.id)
                msg.failed_at = now
                msg.last_error = f"Unknown kind {msg.kind}"
            else:
                try:
                    async with session_maker() as work_session:
                        await handler(work_session, msg.ref_id)
                except Exception as e:
                    msg.last_error = f"{type(e).__name__}: {e}"[:1000]
                    if msg.attempts >= settings.outbox_max_attempts:
                        msg.failed_at = now
                        logger.error(
                            "Outbox: giving up on %s for %s after %d attempts: %s",
                            msg.kind, msg.ref_id, msg.attempts, msg.last_error,
                        )
                    else:
                        msg.next_attempt_at = now + backoff_delay(msg.attempts)
                        logger.warning(
                            "Outbox: %s for %s failed (attempt %d), retrying at %s: %s",
                            msg.kind, msg.ref_id, msg.attempts, msg.next_attempt_at, msg.last_error,
                        )
                else:
                    msg.delivered_at = now
                    msg.last_error = None
                    delivered += 1
            session.add(msg)
            await session.commit()
    return delivered


async def delete_delivered_older_than(session: AsyncSession, days: int) -> int:
    """Delete delivered or abandoned messages created more than ``days`` ago. Returns count deleted."""
    cutoff = utc_now() - timedelta(days=days)
    result = await session.execute(
        delete(OutboxMessage).where(
            OutboxMessage.created_at < cutoff,
            (OutboxMessage.delivered_at.is_not(None)) | (OutboxMessage.failed_at.is_not(None)),
        )
    )
    await session.flush()
    return result.rowcount or 0


async def run_dispatch(session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Dispatch due messages, logging instead of raising (background task entry point)."""
    try:
        n = await dispatch_due(session_maker)
        if n:
            logger.info("Outbox: delivered %d message(s)", n)
    except Exception as e:
        logger.exception("Outbox dispatch failed: %s", e)
