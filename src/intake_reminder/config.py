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
Reminder Configuration

Timezone, storage keys and notification identifiers for the reminder
engine. Values can be overridden via environment variables.
"""

import logging
import os
from dataclasses import dataclass

import pytz

logger = logging.getLogger("intake_reminder.config")


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "Europe/Paris")

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


@dataclass
class ReminderConfig:
    """Configuration for the reminder engine."""

    # Wall-clock times in policies are interpreted in this zone
    timezone: str = "UTC"

    # Store keys are "<prefix>_<name>"
    key_prefix: str = "b12"

    # Dispatcher ids; the secondary one carries the second twice-weekly day
    primary_notification_id: int = 1000
    secondary_notification_id: int = 1001

    # Notification content
    title: str = "Vitamin B12 reminder"
    body: str = "Don't forget to take your vitamin B12!"
    payload: str = "b12_reminder"
    biweekly_payload: str = "b12_reminder_biweekly"

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone)

    def key(self, name: str) -> str:
        return f"{self.key_prefix}_{name}"

    @property
    def settings_key(self) -> str:
        return self.key("reminder_settings")

    @property
    def next_fire_key(self) -> str:
        return self.key("next_notification_date")

    @property
    def last_acknowledged_key(self) -> str:
        return self.key("last_notification_date")

    @property
    def intake_history_key(self) -> str:
        return self.key("intake_history")

    @classmethod
    def from_env(cls) -> "ReminderConfig":
        """Create config from environment variables with defaults."""
        timezone = os.getenv("REMINDER_TIMEZONE", "UTC")
        if not validate_timezone(timezone):
            logger.warning(f"Invalid timezone '{timezone}', falling back to UTC")
            timezone = "UTC"

        return cls(
            timezone=timezone,
            key_prefix=os.getenv("REMINDER_KEY_PREFIX", "b12"),
            primary_notification_id=int(
                os.getenv("REMINDER_PRIMARY_NOTIFICATION_ID", "1000")
            ),
            secondary_notification_id=int(
                os.getenv("REMINDER_SECONDARY_NOTIFICATION_ID", "1001")
            ),
            title=os.getenv("REMINDER_NOTIFICATION_TITLE", "Vitamin B12 reminder"),
            body=os.getenv(
                "REMINDER_NOTIFICATION_BODY", "Don't forget to take your vitamin B12!"
            ),
        )
