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
Schedule State Module

Bookkeeping the coordinator persists between runs: the last armed
biweekly fire instant, the last acknowledged intake and the intake history.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import pytz

from .errors import ParseFailure


@dataclass(frozen=True)
class ParityContext:
    """Prior-state values the resolver may consult for biweekly parity."""

    last_acknowledged_instant: Optional[datetime] = None
    next_fire_instant: Optional[datetime] = None


@dataclass
class ScheduleState:
    """Mutable schedule bookkeeping owned by the coordinator."""

    next_fire_instant: Optional[datetime] = None
    last_acknowledged_instant: Optional[datetime] = None
    intake_history: list[date] = field(default_factory=list)

    def record_intake(self, day: date) -> bool:
        """
        Add a calendar day to the intake history.

        Returns:
            True if the day was new, False if it was already recorded
        """
        if day in self.intake_history:
            return False
        self.intake_history.append(day)
        return True

    def parity_context(self) -> ParityContext:
        return ParityContext(
            last_acknowledged_instant=self.last_acknowledged_instant,
            next_fire_instant=self.next_fire_instant,
        )


def encode_instant(instant: datetime) -> bytes:
    """Encode an aware datetime as ASCII epoch milliseconds."""
    return str(int(instant.timestamp() * 1000)).encode("ascii")


def decode_instant(raw: bytes) -> datetime:
    """
    Decode ASCII epoch milliseconds into an aware UTC datetime.

    Raises:
        ParseFailure: If the bytes are not an integer
    """
    try:
        millis = int(raw.decode("ascii").strip())
        return datetime.fromtimestamp(millis / 1000, tz=pytz.UTC)
    except (UnicodeDecodeError, ValueError, OverflowError, OSError) as e:
        raise ParseFailure(f"Malformed timestamp {raw!r}: {e}") from e


def encode_history(history: list[date]) -> bytes:
    return json.dumps([day.isoformat() for day in history]).encode("utf-8")


def decode_history(raw: bytes) -> list[date]:
    """
    Decode a stored intake history.

    Raises:
        ParseFailure: If the bytes are not a JSON list of ISO dates
    """
    try:
        items = json.loads(raw.decode("utf-8"))
        if not isinstance(items, list):
            raise ValueError("expected a list")
        history: list[date] = []
        for item in items:
            day = date.fromisoformat(item)
            if day not in history:
                history.append(day)
        return history
    except (UnicodeDecodeError, TypeError, ValueError) as e:
        raise ParseFailure(f"Malformed intake history: {e}") from e
