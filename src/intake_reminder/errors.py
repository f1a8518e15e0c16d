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

"""Error types raised by the reminder engine."""


class ReminderError(Exception):
    """Base class for all reminder engine errors."""

    pass


class MissingField(ReminderError):
    """Raised when a policy lacks a field its frequency requires."""

    def __init__(self, field: str, frequency: str):
        self.field = field
        self.frequency = frequency
        super().__init__(f"Policy with frequency '{frequency}' requires '{field}'")


class InvalidPolicy(ReminderError):
    """Raised when a policy field is outside its allowed range."""

    pass


class PersistenceFailure(ReminderError):
    """Raised when the key-value store cannot be read or written."""

    pass


class ParseFailure(ReminderError):
    """Raised when stored policy or state bytes are malformed."""

    pass


class DispatchError(ReminderError):
    """Raised when the notification dispatcher rejects a command."""

    pass
