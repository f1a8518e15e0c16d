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
Event tracking for the reminder engine.

Events land in the analytics_events table, keyed by the reminder's store
prefix so several reminders sharing a database stay distinguishable.

Usage:
    from analytics import track, track_async

    # Fire-and-forget from inside the coordinator
    track("reminder_scheduled", "reminder", reminder_key="b12", properties={"frequency": "DAILY"})

    # Awaited, when the caller needs to know the row was written
    await track_async("intake_recorded", "intake", reminder_key="b12")

    # Reuse an application pool instead of opening a private one
    configure(pool)
    ...
    await shutdown()
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger(__name__)

EVENT_CATEGORIES = frozenset({"reminder", "intake", "error", "system"})

# create_pool raises ValueError/ClientConfigurationError on a bad DSN and a
# closed pool raises InterfaceError, neither of which is a PostgresError
_TRACKING_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    asyncpg.ClientConfigurationError,
    OSError,
    ValueError,
)

_pool: Optional[asyncpg.Pool] = None
_owns_pool: bool = False
_enabled: bool = os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"

# Strong references to in-flight track() tasks until they finish
_pending_tasks: set[asyncio.Task] = set()


def configure(pool: Optional[asyncpg.Pool]) -> None:
    """
    Record events through an existing pool.

    The pool stays owned by the caller; shutdown() will not close it.
    """
    global _pool, _owns_pool
    _pool = pool
    _owns_pool = False


async def _get_pool() -> Optional[asyncpg.Pool]:
    """Return the configured pool, opening a private one from DATABASE_URL."""
    global _pool, _owns_pool
    if _pool is None and _enabled:
        database_url = os.getenv("DATABASE_URL")
        if database_url:
            try:
                _pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
                _owns_pool = True
            except _TRACKING_ERRORS as e:
                logger.warning(f"Analytics pool creation failed: {e}")
                return None
    return _pool


async def track_async(
    event_name: str,
    event_category: str,
    reminder_key: Optional[str] = None,
    properties: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Record a reminder event.

    Args:
        event_name: Event identifier (e.g., "reminder_rescheduled")
        event_category: One of EVENT_CATEGORIES
        reminder_key: Store key prefix of the reminder (optional)
        properties: Extra event data, stored as JSONB

    Returns:
        True if the event was written, False otherwise
    """
    if not _enabled:
        return False

    if event_category not in EVENT_CATEGORIES:
        logger.debug(f"Dropping '{event_name}': unknown category '{event_category}'")
        return False

    pool = await _get_pool()
    if pool is None:
        return False

    try:
        await pool.execute(
            """
            INSERT INTO analytics_events
                (event_name, event_category, reminder_key, properties)
            VALUES ($1, $2, $3, $4)
            """,
            event_name,
            event_category,
            reminder_key,
            json.dumps(properties or {}, default=str),
        )
        return True
    except _TRACKING_ERRORS as e:
        logger.debug(f"Analytics tracking failed for '{event_name}': {e}")
        return False


def track(
    event_name: str,
    event_category: str,
    reminder_key: Optional[str] = None,
    properties: Optional[dict[str, Any]] = None,
) -> None:
    """
    Record a reminder event without waiting for it.

    Schedules track_async on the running loop. Outside a loop the event is
    dropped, so synchronous callers never block on the database.
    """
    if not _enabled:
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug(f"No running event loop, '{event_name}' not tracked")
        return

    task = loop.create_task(track_async(event_name, event_category, reminder_key, properties))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


async def flush() -> None:
    """Wait for every event queued by track() to be written or dropped."""
    if _pending_tasks:
        await asyncio.gather(*list(_pending_tasks))


async def shutdown() -> None:
    """Flush pending events and close the private pool, if one was opened."""
    global _pool, _owns_pool
    await flush()
    if _pool is not None and _owns_pool:
        await _pool.close()
    _pool = None
    _owns_pool = False
