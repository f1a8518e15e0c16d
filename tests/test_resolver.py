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

"""Tests for the recurrence resolver."""

import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from intake_reminder.errors import InvalidPolicy, MissingField
from intake_reminder.policy import Frequency, ReminderPolicy
from intake_reminder.resolver import (
    next_fire_instant,
    next_fire_instants,
    weekly_candidate,
)
from intake_reminder.state import ParityContext

UTC = pytz.UTC

# 2026-01-05 is a Monday
MONDAY = date(2026, 1, 5)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return UTC.localize(datetime(day.year, day.month, day.day, hour, minute))


def policy(frequency: Frequency, **kwargs) -> ReminderPolicy:
    kwargs.setdefault("hour", 9)
    kwargs.setdefault("minute", 0)
    return ReminderPolicy(enabled=True, frequency=frequency, **kwargs)


class TestDaily:
    """Daily recurrence."""

    def test_later_today(self):
        result = next_fire_instant(policy(Frequency.DAILY), at(MONDAY, 8))
        assert result == at(MONDAY, 9)

    def test_rolls_to_tomorrow(self):
        result = next_fire_instant(policy(Frequency.DAILY), at(MONDAY, 9, 30))
        assert result == at(MONDAY + timedelta(days=1), 9)

    def test_exact_boundary_rolls_forward(self):
        result = next_fire_instant(policy(Frequency.DAILY), at(MONDAY, 9))
        assert result == at(MONDAY + timedelta(days=1), 9)

    @pytest.mark.parametrize("hour,minute", [(0, 0), (9, 0), (23, 59), (12, 30)])
    def test_strictly_after_and_within_a_day(self, hour, minute):
        p = policy(Frequency.DAILY, hour=hour, minute=minute)
        for offset_minutes in range(0, 24 * 60, 97):
            now = at(MONDAY, 0) + timedelta(minutes=offset_minutes)
            result = next_fire_instant(p, now)
            assert now < result <= now + timedelta(hours=24)
            assert (result.hour, result.minute) == (hour, minute)

    def test_rejects_out_of_range_hour(self):
        with pytest.raises(InvalidPolicy):
            next_fire_instant(policy(Frequency.DAILY, hour=24), at(MONDAY, 8))

    def test_rejects_out_of_range_minute(self):
        with pytest.raises(InvalidPolicy):
            next_fire_instant(policy(Frequency.DAILY, minute=60), at(MONDAY, 8))

    def test_wall_clock_in_reminder_timezone(self):
        paris = pytz.timezone("Europe/Paris")
        # 07:30 UTC is 08:30 in Paris in January
        result = next_fire_instant(policy(Frequency.DAILY), at(MONDAY, 7, 30), tz=paris)
        assert result.tzinfo is not None
        assert (result.hour, result.minute) == (9, 0)
        assert result.astimezone(UTC) == at(MONDAY, 8)

    def test_naive_now_is_local_wall_clock(self):
        paris = pytz.timezone("Europe/Paris")
        result = next_fire_instant(policy(Frequency.DAILY), datetime(2026, 1, 5, 8, 30), tz=paris)
        assert result.date() == MONDAY
        assert result.hour == 9

    def test_keeps_wall_clock_across_dst_change(self):
        paris = pytz.timezone("Europe/Paris")
        # Clocks go forward on 2026-03-29
        now = paris.localize(datetime(2026, 3, 28, 10, 0))
        result = next_fire_instant(policy(Frequency.DAILY), now, tz=paris)
        assert result.date() == date(2026, 3, 29)
        assert (result.hour, result.minute) == (9, 0)
        assert result.utcoffset() == timedelta(hours=2)


class TestWeekly:
    """Weekly recurrence."""

    def test_same_day_already_passed_goes_to_next_week(self):
        wednesday = MONDAY + timedelta(days=2)
        p = policy(Frequency.WEEKLY, day_of_week=3, hour=8)
        result = next_fire_instant(p, at(wednesday, 10))
        assert result == at(wednesday + timedelta(days=7), 8)

    def test_same_day_still_ahead(self):
        wednesday = MONDAY + timedelta(days=2)
        p = policy(Frequency.WEEKLY, day_of_week=3, hour=8)
        assert next_fire_instant(p, at(wednesday, 7)) == at(wednesday, 8)

    def test_later_in_week(self):
        p = policy(Frequency.WEEKLY, day_of_week=5)
        assert next_fire_instant(p, at(MONDAY, 12)) == at(MONDAY + timedelta(days=4), 9)

    def test_earlier_weekday_wraps(self):
        p = policy(Frequency.WEEKLY, day_of_week=1)
        friday = MONDAY + timedelta(days=4)
        assert next_fire_instant(p, at(friday, 12)) == at(MONDAY + timedelta(days=7), 9)

    @pytest.mark.parametrize("day_of_week", range(1, 8))
    def test_weekday_matches_and_within_a_week(self, day_of_week):
        p = policy(Frequency.WEEKLY, day_of_week=day_of_week)
        for offset_hours in range(0, 7 * 24, 5):
            now = at(MONDAY, 0) + timedelta(hours=offset_hours)
            result = next_fire_instant(p, now)
            assert result.isoweekday() == day_of_week
            assert now < result <= now + timedelta(days=7)

    def test_missing_day_of_week(self):
        p = policy(Frequency.WEEKLY, day_of_week=None)
        with pytest.raises(MissingField) as exc_info:
            next_fire_instant(p, at(MONDAY, 8))
        assert exc_info.value.field == "day_of_week"

    def test_rejects_out_of_range_day(self):
        with pytest.raises(InvalidPolicy):
            next_fire_instant(policy(Frequency.WEEKLY, day_of_week=8), at(MONDAY, 8))

    def test_weekly_candidate_helper(self):
        assert weekly_candidate(2, 9, 0, at(MONDAY, 8)) == at(MONDAY + timedelta(days=1), 9)


class TestTwiceWeekly:
    """Two fixed weekdays per week."""

    def test_both_days_returned_in_order(self):
        p = policy(Frequency.TWICE_WEEKLY, days_of_week=(5, 2))
        result = next_fire_instants(p, at(MONDAY, 8))
        assert result == [
            at(MONDAY + timedelta(days=1), 9),
            at(MONDAY + timedelta(days=4), 9),
        ]

    def test_next_is_earliest(self):
        p = policy(Frequency.TWICE_WEEKLY, days_of_week=(2, 5))
        assert next_fire_instant(p, at(MONDAY, 8)) == at(MONDAY + timedelta(days=1), 9)

    def test_earliest_after_first_day_passed(self):
        p = policy(Frequency.TWICE_WEEKLY, days_of_week=(2, 5))
        wednesday = MONDAY + timedelta(days=2)
        assert next_fire_instant(p, at(wednesday, 8)) == at(MONDAY + timedelta(days=4), 9)

    @pytest.mark.parametrize("days", [None, (2,), (2, 2), (1, 3, 5)])
    def test_requires_two_distinct_days(self, days):
        p = policy(Frequency.TWICE_WEEKLY, days_of_week=days)
        with pytest.raises(MissingField):
            next_fire_instants(p, at(MONDAY, 8))


class TestBiweeklyAnchor:
    """Biweekly parity from an anchor date."""

    def test_anchor_week_is_on(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=1, biweekly_anchor_date=MONDAY)
        assert next_fire_instant(p, at(MONDAY, 8)) == at(MONDAY, 9)

    def test_week_after_anchor_is_off(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=1, biweekly_anchor_date=MONDAY)
        # Anchor occurrence passed, the next Monday is an off week
        result = next_fire_instant(p, at(MONDAY, 10))
        assert result == at(MONDAY + timedelta(days=14), 9)

    def test_two_weeks_after_anchor_is_on(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=1, biweekly_anchor_date=MONDAY)
        now = at(MONDAY + timedelta(days=14), 8)
        assert next_fire_instant(p, now) == at(MONDAY + timedelta(days=14), 9)

    def test_skips_three_weeks_after_anchor(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=1, biweekly_anchor_date=MONDAY)
        now = at(MONDAY + timedelta(days=14), 10)
        assert next_fire_instant(p, now) == at(MONDAY + timedelta(days=28), 9)

    def test_on_weeks_alternate(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=3, biweekly_anchor_date=MONDAY)
        seen = set()
        for offset_days in range(0, 70):
            result = next_fire_instant(p, at(MONDAY + timedelta(days=offset_days), 12))
            assert result.isoweekday() == 3
            assert ((result.date() - MONDAY).days // 7) % 2 == 0
            seen.add(result.date())
        assert len(seen) == 6

    def test_anchor_in_future(self):
        anchor = MONDAY + timedelta(days=21)
        p = policy(Frequency.BIWEEKLY, day_of_week=1, biweekly_anchor_date=anchor)
        # Three weeks before the anchor is an odd distance, so shift
        assert next_fire_instant(p, at(MONDAY, 8)) == at(MONDAY + timedelta(days=7), 9)

    def test_missing_day_of_week(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=None, biweekly_anchor_date=MONDAY)
        with pytest.raises(MissingField):
            next_fire_instant(p, at(MONDAY, 8))


class TestBiweeklyAcknowledgmentFallback:
    """Biweekly parity from the last acknowledgment when no anchor exists."""

    def test_no_history_keeps_candidate(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=3)
        assert next_fire_instant(p, at(MONDAY, 8)) == at(MONDAY + timedelta(days=2), 9)

    def test_recent_ack_shifts_a_week(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=3)
        parity = ParityContext(last_acknowledged_instant=at(MONDAY - timedelta(days=5), 9))
        result = next_fire_instant(p, at(MONDAY, 8), parity)
        assert result == at(MONDAY + timedelta(days=9), 9)

    def test_old_ack_keeps_candidate(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=3)
        parity = ParityContext(last_acknowledged_instant=at(MONDAY - timedelta(days=7), 8))
        result = next_fire_instant(p, at(MONDAY, 8), parity)
        assert result == at(MONDAY + timedelta(days=2), 9)

    def test_anchor_takes_precedence(self):
        p = policy(Frequency.BIWEEKLY, day_of_week=3, biweekly_anchor_date=MONDAY)
        parity = ParityContext(last_acknowledged_instant=at(MONDAY, 7))
        result = next_fire_instant(p, at(MONDAY, 8), parity)
        assert result == at(MONDAY + timedelta(days=2), 9)
