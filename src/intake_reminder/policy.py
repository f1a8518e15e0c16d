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
Reminder Policy Module

The user-editable recurrence settings: frequency, time of day and the
frequency-specific weekday fields. Policies are immutable; edits go through
PolicyPatch and produce a new policy.
"""

import json
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Optional

from .errors import ParseFailure

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


class Frequency(Enum):
    """How often the reminder fires. Values are the stored ordinals."""

    DAILY = 0
    WEEKLY = 1
    TWICE_WEEKLY = 2
    BIWEEKLY = 3


@dataclass(frozen=True)
class ReminderPolicy:
    """The current reminder settings."""

    enabled: bool = False
    frequency: Frequency = Frequency.DAILY
    hour: int = 9  # 0-23, local time
    minute: int = 0  # 0-59
    day_of_week: Optional[int] = 1  # 1=Monday..7=Sunday, Weekly/Biweekly
    days_of_week: Optional[tuple[int, ...]] = None  # TwiceWeekly, exactly 2
    biweekly_anchor_date: Optional[date] = None  # first "on" week for Biweekly

    def apply(self, patch: "PolicyPatch") -> "ReminderPolicy":
        """Return a new policy with the patch applied."""
        changes: dict[str, Any] = {}
        for name in ("enabled", "frequency", "hour", "minute"):
            value = getattr(patch, name)
            if value is not None:
                changes[name] = value
        for name in ("day_of_week", "days_of_week", "biweekly_anchor_date"):
            update = getattr(patch, name)
            if update is CLEAR:
                changes[name] = None
            elif isinstance(update, SetTo):
                value = update.value
                if name == "days_of_week" and value is not None:
                    value = tuple(value)
                changes[name] = value
        return replace(self, **changes)

    def describe(self) -> str:
        """
        Human-readable summary of the policy.

        Returns:
            Description like "Every Monday at 09:00"
        """
        if not self.enabled:
            return "Disabled"

        time_str = f"{self.hour:02d}:{self.minute:02d}"

        if self.frequency == Frequency.DAILY:
            return f"Every day at {time_str}"
        if self.frequency == Frequency.WEEKLY:
            return f"Every {_day_name(self.day_of_week)} at {time_str}"
        if self.frequency == Frequency.TWICE_WEEKLY:
            if self.days_of_week and len(set(self.days_of_week)) == 2:
                first, second = sorted(self.days_of_week)
                return f"Every {_day_name(first)} and {_day_name(second)} at {time_str}"
            return f"Twice a week at {time_str}"
        return f"Every other {_day_name(self.day_of_week)} at {time_str}"


def _day_name(day: Optional[int]) -> str:
    if day is None:
        return "(day not set)"
    return DAY_NAMES.get(day, f"(unknown day {day})")


DEFAULT_POLICY = ReminderPolicy()


class _Leave:
    def __repr__(self) -> str:
        return "LEAVE"


class _Clear:
    def __repr__(self) -> str:
        return "CLEAR"


LEAVE = _Leave()
CLEAR = _Clear()


@dataclass(frozen=True)
class SetTo:
    """Patch instruction: replace an optional field with a value."""

    value: Any


@dataclass(frozen=True)
class PolicyPatch:
    """
    Partial update for a ReminderPolicy.

    Required fields use None for "leave unchanged". Optional fields take
    LEAVE, CLEAR or SetTo(value) so that clearing a field is distinct from
    not touching it.
    """

    enabled: Optional[bool] = None
    frequency: Optional[Frequency] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    day_of_week: Any = LEAVE
    days_of_week: Any = LEAVE
    biweekly_anchor_date: Any = LEAVE


def policy_to_dict(policy: ReminderPolicy) -> dict[str, Any]:
    """Serialize a policy to the stored JSON shape."""
    return {
        "enabled": policy.enabled,
        "frequency": policy.frequency.value,
        "hour": policy.hour,
        "minute": policy.minute,
        "dayOfWeek": policy.day_of_week,
        "daysOfWeek": list(policy.days_of_week) if policy.days_of_week is not None else None,
        "biweeklyStartDate": (
            policy.biweekly_anchor_date.isoformat() if policy.biweekly_anchor_date else None
        ),
    }


def policy_from_dict(data: dict[str, Any]) -> ReminderPolicy:
    """
    Build a policy from its stored JSON shape.

    Missing keys take the defaults, except frequency which defaults to
    weekly for records written before the field existed.

    Raises:
        ParseFailure: If a value has the wrong type, is out of range or is
            an unknown ordinal
    """
    enabled = data.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ParseFailure(f"Malformed reminder policy: enabled must be a boolean, got {enabled!r}")

    ordinal = _int_field(data, "frequency", Frequency.WEEKLY.value)
    try:
        frequency = Frequency(ordinal)
    except ValueError as e:
        raise ParseFailure(f"Malformed reminder policy: unknown frequency {ordinal}") from e

    day_of_week = None
    if data.get("dayOfWeek") is not None:
        day_of_week = _int_field(data, "dayOfWeek", None, 1, 7)

    days_of_week = None
    days = data.get("daysOfWeek")
    if days is not None:
        if not isinstance(days, list):
            raise ParseFailure(
                f"Malformed reminder policy: daysOfWeek must be a list, got {days!r}"
            )
        days_of_week = tuple(_checked_int("daysOfWeek", d, 1, 7) for d in days)

    anchor = data.get("biweeklyStartDate")
    anchor_date = None
    if anchor:
        try:
            anchor_date = date.fromisoformat(anchor)
        except (TypeError, ValueError) as e:
            raise ParseFailure(f"Malformed reminder policy: biweeklyStartDate {anchor!r}") from e

    return ReminderPolicy(
        enabled=enabled,
        frequency=frequency,
        hour=_int_field(data, "hour", 9, 0, 23),
        minute=_int_field(data, "minute", 0, 0, 59),
        day_of_week=day_of_week,
        days_of_week=days_of_week,
        biweekly_anchor_date=anchor_date,
    )


def _int_field(
    data: dict[str, Any],
    key: str,
    default: Optional[int],
    low: Optional[int] = None,
    high: Optional[int] = None,
) -> int:
    return _checked_int(key, data.get(key, default), low, high)


def _checked_int(key: str, value: Any, low: Optional[int], high: Optional[int]) -> int:
    # bool is an int subclass; JSON true/false is never a valid number here
    if not isinstance(value, int) or isinstance(value, bool):
        raise ParseFailure(f"Malformed reminder policy: {key} must be an integer, got {value!r}")
    if low is not None and high is not None and not low <= value <= high:
        raise ParseFailure(f"Malformed reminder policy: {key} must be {low}-{high}, got {value}")
    return value


def encode_policy(policy: ReminderPolicy) -> bytes:
    return json.dumps(policy_to_dict(policy)).encode("utf-8")


def decode_policy(raw: bytes) -> ReminderPolicy:
    """
    Decode stored policy bytes.

    Raises:
        ParseFailure: If the bytes are not a valid policy document
    """
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseFailure(f"Reminder policy is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseFailure("Reminder policy must be a JSON object")
    return policy_from_dict(data)
