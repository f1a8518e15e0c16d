# intake-reminder - Recurring Reminder Scheduling Engine
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Notification Dispatcher Module

The contract the coordinator uses to arm and cancel notifications, plus a
dispatcher that keeps schedules in the scheduled_notifications table.
Repeating schedules are stored as CRON expressions and advanced with
croniter after each delivery; one-shot schedules complete after delivery.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import asyncpg
import pytz
from croniter import croniter

from .errors import DispatchError

logger = logging.getLogger("intake_reminder.dispatcher")


class RepeatComponent(Enum):
    """Which part of the fire instant repeats."""

    NONE = "none"  # one-shot
    TIME_OF_DAY = "time_of_day"  # every day at the same time
    DAY_OF_WEEK_AND_TIME = "day_of_week_and_time"  # every week, same weekday and time


@dataclass(frozen=True)
class Notification:
    """What the user sees when the reminder fires."""

    title: str
    body: str
    payload: str


class NotificationDispatcher(ABC):
    """Contract for the notification collaborator."""

    @abstractmethod
    async def schedule_at(
        self,
        notification_id: int,
        fire_instant: datetime,
        repeat: RepeatComponent,
        notification: Notification,
    ) -> None:
        """Arm a notification. Replaces any schedule with the same id."""

    @abstractmethod
    async def cancel(self, notification_id: int) -> None:
        """Cancel a notification. Cancelling an unknown id is a no-op."""


def cron_for(
    fire_instant: datetime,
    repeat: RepeatComponent,
    tz: pytz.BaseTzInfo = pytz.UTC,
) -> Optional[str]:
    """
    Build the CRON expression for a repeating schedule.

    Args:
        fire_instant: First fire instant
        repeat: Repeat component
        tz: Timezone the wall-clock fields are expressed in

    Returns:
        5-field CRON expression, or None for one-shot schedules
    """
    if repeat == RepeatComponent.NONE:
        return None

    local = fire_instant.astimezone(tz)
    if repeat == RepeatComponent.TIME_OF_DAY:
        return f"{local.minute} {local.hour} * * *"

    # CRON weekdays count from Sunday=0
    return f"{local.minute} {local.hour} * * {local.isoweekday() % 7}"


def calculate_next_execution(
    cron_expr: str,
    tz: pytz.BaseTzInfo,
    base: Optional[datetime] = None,
) -> datetime:
    """
    Calculate the next execution time for a CRON expression.

    Args:
        cron_expr: CRON expression (5 fields)
        tz: Timezone for the schedule
        base: Reference instant (defaults to now)

    Returns:
        Next execution time in UTC
    """
    now = base.astimezone(tz) if base is not None else datetime.now(tz)
    cron = croniter(cron_expr, now)
    next_local = cron.get_next(datetime)

    if next_local.tzinfo is None:
        next_local = tz.localize(next_local)

    return next_local.astimezone(pytz.UTC)


class ScheduledNotificationDispatcher(NotificationDispatcher):
    """
    Dispatcher backed by the scheduled_notifications table.

    A delivery worker polls due_notifications() and reports back through
    mark_delivered().
    """

    def __init__(self, db_pool: asyncpg.Pool, timezone: str = "UTC"):
        """
        Initialize the dispatcher.

        Args:
            db_pool: asyncpg connection pool
            timezone: IANA timezone that CRON fields are expressed in
        """
        self.db = db_pool
        self.timezone = timezone
        self.tz = pytz.timezone(timezone)

    async def schedule_at(
        self,
        notification_id: int,
        fire_instant: datetime,
        repeat: RepeatComponent,
        notification: Notification,
    ) -> None:
        cron_expr = cron_for(fire_instant, repeat, self.tz)
        if cron_expr is not None and not croniter.is_valid(cron_expr):
            raise DispatchError(f"Invalid CRON expression: {cron_expr}")

        try:
            await self.db.execute(
                """
                INSERT INTO scheduled_notifications (
                    notification_id, title, body, payload, cron_expression,
                    next_fire_at, timezone, status, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, 'active', NOW())
                ON CONFLICT (notification_id)
                DO UPDATE SET title = $2, body = $3, payload = $4,
                              cron_expression = $5, next_fire_at = $6,
                              timezone = $7, status = 'active',
                              updated_at = NOW()
                """,
                notification_id,
                notification.title,
                notification.body,
                notification.payload,
                cron_expr,
                fire_instant.astimezone(pytz.UTC),
                self.timezone,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to schedule notification {notification_id}: {e}")
            raise DispatchError(f"Failed to schedule notification {notification_id}: {e}") from e

        logger.info(
            f"Scheduled notification {notification_id} at {fire_instant.isoformat()} "
            f"(repeat={repeat.value})"
        )

    async def cancel(self, notification_id: int) -> None:
        try:
            result = await self.db.execute(
                """
                DELETE FROM scheduled_notifications
                WHERE notification_id = $1
                """,
                notification_id,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DispatchError(f"Failed to cancel notification {notification_id}: {e}") from e

        if result == "DELETE 1":
            logger.info(f"Cancelled notification {notification_id}")

    # =========================================================================
    # Delivery-worker-facing methods
    # =========================================================================

    async def due_notifications(self, now: Optional[datetime] = None) -> list[dict]:
        """
        Get all notifications that are due for delivery.

        Args:
            now: Reference instant (defaults to now)

        Returns:
            List of notification dicts that should be delivered
        """
        now = now or datetime.now(pytz.UTC)

        rows = await self.db.fetch(
            """
            SELECT notification_id, title, body, payload, cron_expression,
                   next_fire_at, timezone, delivery_count
            FROM scheduled_notifications
            WHERE status = 'active' AND next_fire_at <= $1
            ORDER BY next_fire_at ASC
            LIMIT 100
            """,
            now,
        )

        return [dict(row) for row in rows]

    async def mark_delivered(
        self, notification_id: int, now: Optional[datetime] = None
    ) -> None:
        """
        Record a delivery.

        Repeating notifications move to their next CRON occurrence,
        one-shot notifications are marked completed.

        Args:
            notification_id: Notification id
            now: Delivery instant (defaults to now)
        """
        now = now or datetime.now(pytz.UTC)

        row = await self.db.fetchrow(
            """
            SELECT cron_expression, timezone FROM scheduled_notifications
            WHERE notification_id = $1
            """,
            notification_id,
        )
        if not row:
            return

        if row["cron_expression"]:
            tz = pytz.timezone(row["timezone"])
            next_fire = calculate_next_execution(row["cron_expression"], tz, now)

            await self.db.execute(
                """
                UPDATE scheduled_notifications
                SET last_delivered_at = $2,
                    next_fire_at = $3,
                    delivery_count = delivery_count + 1,
                    updated_at = NOW()
                WHERE notification_id = $1
                """,
                notification_id,
                now,
                next_fire,
            )
            logger.info(f"Notification {notification_id} delivered, next at {next_fire}")
        else:
            await self.db.execute(
                """
                UPDATE scheduled_notifications
                SET status = 'completed',
                    last_delivered_at = $2,
                    delivery_count = delivery_count + 1,
                    updated_at = NOW()
                WHERE notification_id = $1
                """,
                notification_id,
                now,
            )
            logger.info(f"One-shot notification {notification_id} completed")
