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
Recurrence Resolver Module

Computes the next fire instant for a reminder policy. Everything here is a
pure function of the policy, the reference instant and, for biweekly
policies, the parity context.

An instant equal to `now` counts as already past and rolls forward.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from .errors import InvalidPolicy, MissingField
from .policy import Frequency, ReminderPolicy
from .state import ParityContext

logger = logging.getLogger("intake_reminder.resolver")

WEEK = timedelta(days=7)


def _to_local(now: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Express `now` in the reminder timezone. Naive values are local wall-clock."""
    if now.tzinfo is None:
        return tz.localize(now)
    return now.astimezone(tz)


def _at(day: date, hour: int, minute: int, tz: pytz.BaseTzInfo) -> datetime:
    """Localize a wall-clock time on a calendar date."""
    return tz.normalize(tz.localize(datetime.combine(day, time(hour, minute))))


def _validate_time(policy: ReminderPolicy) -> None:
    if not 0 <= policy.hour <= 23:
        raise InvalidPolicy(f"Hour must be 0-23, got {policy.hour}")
    if not 0 <= policy.minute <= 59:
        raise InvalidPolicy(f"Minute must be 0-59, got {policy.minute}")


def _validate_weekday(day: int) -> None:
    if not 1 <= day <= 7:
        raise InvalidPolicy(f"Day of week must be 1-7, got {day}")


def weekly_candidate(
    day_of_week: int,
    hour: int,
    minute: int,
    now: datetime,
    tz: pytz.BaseTzInfo = pytz.UTC,
) -> datetime:
    """
    Next occurrence of a weekday at a wall-clock time.

    Args:
        day_of_week: Target ISO weekday (1=Monday..7=Sunday)
        hour: Hour of day (0-23)
        minute: Minute (0-59)
        now: Reference instant
        tz: Reminder timezone

    Returns:
        Aware datetime in `tz`, strictly after `now` and at most 7 days out
    """
    local_now = _to_local(now, tz)
    days_until = (day_of_week - local_now.isoweekday()) % 7
    if days_until == 0 and _at(local_now.date(), hour, minute, tz) <= local_now:
        days_until = 7
    return _at(local_now.date() + timedelta(days=days_until), hour, minute, tz)


def _daily(policy: ReminderPolicy, now: datetime, tz: pytz.BaseTzInfo) -> datetime:
    local_now = _to_local(now, tz)
    candidate = _at(local_now.date(), policy.hour, policy.minute, tz)
    if candidate <= local_now:
        candidate = _at(local_now.date() + timedelta(days=1), policy.hour, policy.minute, tz)
    return candidate


def _weekly(policy: ReminderPolicy, now: datetime, tz: pytz.BaseTzInfo) -> datetime:
    if policy.day_of_week is None:
        raise MissingField("day_of_week", policy.frequency.name)
    _validate_weekday(policy.day_of_week)
    return weekly_candidate(policy.day_of_week, policy.hour, policy.minute, now, tz)


def _twice_weekly(
    policy: ReminderPolicy, now: datetime, tz: pytz.BaseTzInfo
) -> list[datetime]:
    days = policy.days_of_week
    if days is None or len(days) != 2 or days[0] == days[1]:
        raise MissingField("days_of_week", policy.frequency.name)
    for day in days:
        _validate_weekday(day)
    return sorted(
        weekly_candidate(day, policy.hour, policy.minute, now, tz) for day in days
    )


def _anchor_parity_shift(candidate_day: date, anchor: date) -> bool:
    """Odd week counts from the anchor are "off" weeks."""
    weeks_diff = (candidate_day - anchor).days // 7
    return weeks_diff % 2 != 0


def _acknowledgment_parity_shift(now: datetime, parity: ParityContext) -> bool:
    """
    Heuristic parity without an anchor: an intake acknowledged within the
    last week covers the current cycle.
    """
    last_ack = parity.last_acknowledged_instant
    if last_ack is None:
        return False
    if last_ack.tzinfo is None:
        last_ack = pytz.UTC.localize(last_ack)
    return now - last_ack < WEEK


def _biweekly(
    policy: ReminderPolicy,
    now: datetime,
    parity: ParityContext,
    tz: pytz.BaseTzInfo,
) -> datetime:
    candidate = _weekly(policy, now, tz)

    if policy.biweekly_anchor_date is not None:
        shift = _anchor_parity_shift(candidate.date(), policy.biweekly_anchor_date)
    else:
        shift = _acknowledgment_parity_shift(_to_local(now, tz), parity)

    if shift:
        logger.debug(f"Biweekly candidate {candidate} is in an off week, shifting 7 days")
        candidate = _at(candidate.date() + WEEK, policy.hour, policy.minute, tz)
    return candidate


def next_fire_instants(
    policy: ReminderPolicy,
    now: datetime,
    parity: Optional[ParityContext] = None,
    tz: pytz.BaseTzInfo = pytz.UTC,
) -> list[datetime]:
    """
    Compute every instant that must be scheduled for a policy.

    Twice-weekly policies yield two instants (sorted), all others one.

    Args:
        policy: Reminder policy (the enabled flag is not consulted)
        now: Reference instant
        parity: Prior state for biweekly parity
        tz: Reminder timezone

    Returns:
        Aware datetimes in `tz`, each strictly after `now`

    Raises:
        MissingField: If the frequency's required field is absent
        InvalidPolicy: If a field is out of range
    """
    _validate_time(policy)

    if policy.frequency == Frequency.DAILY:
        return [_daily(policy, now, tz)]
    if policy.frequency == Frequency.WEEKLY:
        return [_weekly(policy, now, tz)]
    if policy.frequency == Frequency.TWICE_WEEKLY:
        return _twice_weekly(policy, now, tz)
    if policy.frequency == Frequency.BIWEEKLY:
        return [_biweekly(policy, now, parity or ParityContext(), tz)]

    raise InvalidPolicy(f"Unknown frequency: {policy.frequency!r}")


def next_fire_instant(
    policy: ReminderPolicy,
    now: datetime,
    parity: Optional[ParityContext] = None,
    tz: pytz.BaseTzInfo = pytz.UTC,
) -> datetime:
    """The earliest instant returned by next_fire_instants()."""
    return next_fire_instants(policy, now, parity, tz)[0]
