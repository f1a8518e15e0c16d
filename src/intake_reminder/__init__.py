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
Intake Reminder Package

Recurring reminder scheduling: daily, weekly, twice-weekly and biweekly
policies, with biweekly parity kept across restarts.
"""

from .config import ReminderConfig, validate_timezone
from .coordinator import ScheduleCoordinator
from .dispatcher import (
    Notification,
    NotificationDispatcher,
    RepeatComponent,
    ScheduledNotificationDispatcher,
)
from .errors import (
    DispatchError,
    InvalidPolicy,
    MissingField,
    ParseFailure,
    PersistenceFailure,
    ReminderError,
)
from .policy import (
    CLEAR,
    DEFAULT_POLICY,
    LEAVE,
    Frequency,
    PolicyPatch,
    ReminderPolicy,
    SetTo,
)
from .resolver import next_fire_instant, next_fire_instants
from .state import ParityContext, ScheduleState
from .store import InMemoryStore, KeyValueStore, PostgresStore

__all__ = [
    "ReminderConfig",
    "validate_timezone",
    "ScheduleCoordinator",
    "Notification",
    "NotificationDispatcher",
    "RepeatComponent",
    "ScheduledNotificationDispatcher",
    "DispatchError",
    "InvalidPolicy",
    "MissingField",
    "ParseFailure",
    "PersistenceFailure",
    "ReminderError",
    "CLEAR",
    "DEFAULT_POLICY",
    "LEAVE",
    "Frequency",
    "PolicyPatch",
    "ReminderPolicy",
    "SetTo",
    "next_fire_instant",
    "next_fire_instants",
    "ParityContext",
    "ScheduleState",
    "InMemoryStore",
    "KeyValueStore",
    "PostgresStore",
]
