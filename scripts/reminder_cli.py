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
Reminder CLI

Command-line tool for inspecting and driving the reminder schedule.

Usage:
    # Show the current policy and next occurrence
    python scripts/reminder_cli.py show

    # Remind every day at 9:00
    python scripts/reminder_cli.py set daily --time 09:00

    # Remind every other Monday, starting the week of 2026-01-05
    python scripts/reminder_cli.py set biweekly --day 1 --time 08:30 --anchor 2026-01-05

    # Remind on Tuesdays and Fridays
    python scripts/reminder_cli.py set twice-weekly --days 2 5 --time 09:00

    # Turn the reminder off
    python scripts/reminder_cli.py disable

    # Record an intake for today
    python scripts/reminder_cli.py ack

    # Re-arm a lapsed biweekly reminder
    python scripts/reminder_cli.py resume

    # Show intake history
    python scripts/reminder_cli.py history

    # Show notifications due for delivery
    python scripts/reminder_cli.py due
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import date

import asyncpg
from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import analytics  # noqa: E402
from intake_reminder import (  # noqa: E402
    Frequency,
    PolicyPatch,
    PostgresStore,
    ReminderConfig,
    ReminderError,
    ReminderPolicy,
    ScheduleCoordinator,
    ScheduledNotificationDispatcher,
)

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)

FREQUENCIES = {
    "daily": Frequency.DAILY,
    "weekly": Frequency.WEEKLY,
    "twice-weekly": Frequency.TWICE_WEEKLY,
    "biweekly": Frequency.BIWEEKLY,
}


def parse_time(value: str) -> tuple[int, int]:
    """Parse HH:MM into (hour, minute)."""
    try:
        hour, minute = (int(part) for part in value.split(":"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected HH:MM, got '{value}'")
    return hour, minute


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD into a date."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got '{value}'")


def build_policy(args: argparse.Namespace) -> ReminderPolicy:
    hour, minute = args.time
    return ReminderPolicy(
        enabled=True,
        frequency=FREQUENCIES[args.frequency],
        hour=hour,
        minute=minute,
        day_of_week=args.day,
        days_of_week=tuple(args.days) if args.days else None,
        biweekly_anchor_date=args.anchor,
    )


async def show(coordinator: ScheduleCoordinator) -> None:
    policy = await coordinator.get_policy()
    next_fire = await coordinator.next_occurrence()
    print(f"Policy: {policy.describe()}")
    print(f"Next:   {next_fire.strftime('%a %Y-%m-%d %H:%M %Z') if next_fire else '-'}")


async def show_history(coordinator: ScheduleCoordinator) -> None:
    history = await coordinator.intake_history()
    if not history:
        print("No intakes recorded.")
        return
    print(f"{len(history)} intake(s):")
    for day in history:
        print(f"  {day.strftime('%a %Y-%m-%d')}")


async def show_due(dispatcher: ScheduledNotificationDispatcher) -> None:
    due = await dispatcher.due_notifications()
    if not due:
        print("No notifications due.")
        return
    print(f"{'ID':<6} {'Due':<26} {'Schedule':<16} {'Payload'}")
    print("-" * 70)
    for row in due:
        print(
            f"{row['notification_id']:<6} "
            f"{row['next_fire_at'].isoformat():<26} "
            f"{row['cron_expression'] or 'one-shot':<16} "
            f"{row['payload']}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reminder schedule tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="Show policy and next occurrence")

    set_parser = subparsers.add_parser("set", help="Replace the reminder policy")
    set_parser.add_argument("frequency", choices=sorted(FREQUENCIES))
    set_parser.add_argument("--time", type=parse_time, default=(9, 0), help="HH:MM")
    set_parser.add_argument("--day", type=int, help="ISO weekday 1-7 (weekly/biweekly)")
    set_parser.add_argument("--days", type=int, nargs=2, help="Two ISO weekdays (twice-weekly)")
    set_parser.add_argument(
        "--anchor", type=parse_date, help="Date in the first reminder week (biweekly)"
    )

    subparsers.add_parser("disable", help="Turn the reminder off")
    subparsers.add_parser("ack", help="Record an intake for today")
    subparsers.add_parser("resume", help="Re-arm a lapsed biweekly reminder")
    subparsers.add_parser("history", help="Show intake history")
    subparsers.add_parser("due", help="Show notifications due for delivery")

    return parser


async def main() -> int:
    args = build_parser().parse_args()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL not set")
        return 1

    config = ReminderConfig.from_env()
    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
    analytics.configure(pool)
    dispatcher = ScheduledNotificationDispatcher(pool, config.timezone)
    coordinator = ScheduleCoordinator(PostgresStore(pool), dispatcher, config)

    try:
        if args.command == "show":
            await show(coordinator)
        elif args.command == "set":
            await coordinator.apply_policy(build_policy(args))
            await show(coordinator)
        elif args.command == "disable":
            await coordinator.update_policy(PolicyPatch(enabled=False))
            print("Reminder disabled.")
        elif args.command == "ack":
            await coordinator.acknowledge()
            await show(coordinator)
        elif args.command == "resume":
            rescheduled = await coordinator.reconcile_on_resume()
            print("Rescheduled." if rescheduled else "Nothing to do.")
        elif args.command == "history":
            await show_history(coordinator)
        elif args.command == "due":
            await show_due(dispatcher)
    except ReminderError as e:
        print(f"Error: {e}")
        return 1
    finally:
        await analytics.shutdown()
        await pool.close()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
