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
Schedule Coordinator Module

Owns what is currently scheduled for the reminder. Resolves fire instants,
arms and cancels notifications through the dispatcher, and persists the
policy and schedule state through the key-value store.

Biweekly reminders are armed one occurrence at a time, so the host
application must call reconcile_on_resume() when it regains focus and
acknowledge() when the user confirms an intake.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Optional

import pytz

from analytics import track

from .config import ReminderConfig
from .dispatcher import Notification, NotificationDispatcher, RepeatComponent
from .errors import DispatchError, MissingField, ParseFailure
from .policy import (
    DEFAULT_POLICY,
    Frequency,
    PolicyPatch,
    ReminderPolicy,
    decode_policy,
    encode_policy,
)
from .resolver import next_fire_instants
from .state import (
    ScheduleState,
    decode_history,
    decode_instant,
    encode_history,
    encode_instant,
)
from .store import KeyValueStore

logger = logging.getLogger("intake_reminder.coordinator")

REPEAT_FOR_FREQUENCY = {
    Frequency.DAILY: RepeatComponent.TIME_OF_DAY,
    Frequency.WEEKLY: RepeatComponent.DAY_OF_WEEK_AND_TIME,
    Frequency.TWICE_WEEKLY: RepeatComponent.DAY_OF_WEEK_AND_TIME,
    Frequency.BIWEEKLY: RepeatComponent.NONE,
}


class ScheduleCoordinator:
    """
    Lifecycle manager for a single reminder.

    Every public operation runs under one asyncio.Lock, so policy changes,
    acknowledgments and resume reconciliation never interleave.
    """

    def __init__(
        self,
        store: KeyValueStore,
        dispatcher: NotificationDispatcher,
        config: Optional[ReminderConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            store: Key-value persistence collaborator
            dispatcher: Notification collaborator
            config: Reminder configuration (defaults to ReminderConfig())
            clock: Returns the current aware instant (defaults to UTC now)
        """
        self.store = store
        self.dispatcher = dispatcher
        self.config = config or ReminderConfig()
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self._lock = asyncio.Lock()

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = self.config.tz.localize(now)
        return now

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    async def _load_policy(self) -> ReminderPolicy:
        raw = await self.store.get(self.config.settings_key)
        if raw is None:
            return DEFAULT_POLICY
        try:
            return decode_policy(raw)
        except ParseFailure as e:
            logger.warning(f"Stored reminder policy unreadable, using default: {e}")
            return DEFAULT_POLICY

    async def _load_instant(self, key: str) -> Optional[datetime]:
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return decode_instant(raw)
        except ParseFailure as e:
            logger.warning(f"Ignoring unreadable '{key}': {e}")
            return None

    async def _load_state(self) -> ScheduleState:
        history: list[date] = []
        raw_history = await self.store.get(self.config.intake_history_key)
        if raw_history is not None:
            try:
                history = decode_history(raw_history)
            except ParseFailure as e:
                logger.warning(f"Ignoring unreadable intake history: {e}")

        return ScheduleState(
            next_fire_instant=await self._load_instant(self.config.next_fire_key),
            last_acknowledged_instant=await self._load_instant(
                self.config.last_acknowledged_key
            ),
            intake_history=history,
        )

    def _notification(self, policy: ReminderPolicy) -> Notification:
        payload = (
            self.config.biweekly_payload
            if policy.frequency == Frequency.BIWEEKLY
            else self.config.payload
        )
        return Notification(title=self.config.title, body=self.config.body, payload=payload)

    async def _cancel_all(self) -> None:
        await self.dispatcher.cancel(self.config.primary_notification_id)
        await self.dispatcher.cancel(self.config.secondary_notification_id)

    # =========================================================================
    # Operations (callers hold the lock)
    # =========================================================================

    async def _apply_policy(self, policy: ReminderPolicy) -> None:
        instants: list[datetime] = []
        if policy.enabled:
            # Resolve before touching the dispatcher or the store
            state = await self._load_state()
            instants = next_fire_instants(
                policy, self._now(), state.parity_context(), self.config.tz
            )

        await self._cancel_all()

        if not policy.enabled:
            await self.store.set(self.config.settings_key, encode_policy(policy))
            logger.info("Reminder disabled")
            track("reminder_disabled", "reminder", reminder_key=self.config.key_prefix)
            return

        repeat = REPEAT_FOR_FREQUENCY[policy.frequency]
        notification = self._notification(policy)
        ids = (self.config.primary_notification_id, self.config.secondary_notification_id)

        try:
            for notification_id, instant in zip(ids, instants):
                await self.dispatcher.schedule_at(
                    notification_id, instant, repeat, notification
                )
        except DispatchError as e:
            logger.error(f"Failed to schedule reminder: {e}", exc_info=True)
            track(
                "reminder_schedule_error",
                "error",
                reminder_key=self.config.key_prefix,
                properties={
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )
            raise

        if policy.frequency == Frequency.BIWEEKLY:
            await self.store.set(self.config.next_fire_key, encode_instant(instants[0]))

        await self.store.set(self.config.settings_key, encode_policy(policy))

        logger.info(
            f"Scheduled reminder ({policy.describe()}), next at {instants[0].isoformat()}"
        )
        track(
            "reminder_scheduled",
            "reminder",
            reminder_key=self.config.key_prefix,
            properties={
                "frequency": policy.frequency.name,
                "next_fire_at": instants[0].isoformat(),
                "notification_count": len(instants),
            },
        )

    # =========================================================================
    # Public API
    # =========================================================================

    async def apply_policy(self, policy: ReminderPolicy) -> None:
        """
        Replace the current policy and re-arm notifications.

        Args:
            policy: The new policy

        Raises:
            MissingField: If the policy lacks its frequency's required field
            InvalidPolicy: If a field is out of range
            DispatchError: If the dispatcher rejects a schedule
            PersistenceFailure: If the store cannot be read or written
        """
        async with self._lock:
            await self._apply_policy(policy)

    async def update_policy(self, patch: PolicyPatch) -> ReminderPolicy:
        """
        Apply a partial update to the stored policy and re-arm.

        Returns:
            The policy now in effect
        """
        async with self._lock:
            policy = (await self._load_policy()).apply(patch)
            await self._apply_policy(policy)
            return policy

    async def acknowledge(self) -> None:
        """
        Record that the user took their intake.

        Adds today to the intake history (once per calendar day), stores the
        acknowledgment instant and re-arms an enabled biweekly reminder.
        """
        async with self._lock:
            now = self._now()
            today = now.astimezone(self.config.tz).date()

            state = await self._load_state()
            if state.record_intake(today):
                await self.store.set(
                    self.config.intake_history_key, encode_history(state.intake_history)
                )
                track(
                    "intake_recorded",
                    "intake",
                    reminder_key=self.config.key_prefix,
                    properties={"date": today.isoformat()},
                )

            await self.store.set(self.config.last_acknowledged_key, encode_instant(now))
            logger.info(f"Intake acknowledged at {now.isoformat()}")

            policy = await self._load_policy()
            if policy.enabled and policy.frequency == Frequency.BIWEEKLY:
                await self._apply_policy(policy)

    async def reconcile_on_resume(self) -> bool:
        """
        Re-arm a biweekly reminder whose one-shot schedule has lapsed.

        Call whenever the host application regains focus.

        Returns:
            True if the reminder was rescheduled
        """
        async with self._lock:
            policy = await self._load_policy()
            if not policy.enabled or policy.frequency != Frequency.BIWEEKLY:
                return False

            next_fire = await self._load_instant(self.config.next_fire_key)
            now = self._now()
            if next_fire is not None and next_fire > now:
                return False

            logger.info(f"Biweekly reminder lapsed (next={next_fire}), rescheduling")
            await self._apply_policy(policy)
            track("reminder_rescheduled", "reminder", reminder_key=self.config.key_prefix)
            return True

    async def next_occurrence(self) -> Optional[datetime]:
        """
        Project the next fire instant without changing anything.

        Returns:
            Next fire instant in the reminder timezone, or None if the
            reminder is disabled or its policy is missing a required field
        """
        async with self._lock:
            policy = await self._load_policy()
            if not policy.enabled:
                return None

            now = self._now()
            state = await self._load_state()

            # The armed biweekly one-shot is authoritative while it is pending
            if (
                policy.frequency == Frequency.BIWEEKLY
                and state.next_fire_instant is not None
                and state.next_fire_instant > now
            ):
                return state.next_fire_instant.astimezone(self.config.tz)

            try:
                return next_fire_instants(
                    policy, now, state.parity_context(), self.config.tz
                )[0]
            except MissingField:
                return None

    async def get_policy(self) -> ReminderPolicy:
        """The stored policy, or the disabled default."""
        async with self._lock:
            return await self._load_policy()

    async def intake_history(self) -> list[date]:
        """Recorded intake days, most recent first."""
        async with self._lock:
            state = await self._load_state()
        return sorted(state.intake_history, reverse=True)

    async def cancel(self) -> None:
        """Cancel armed notifications without changing the stored policy."""
        async with self._lock:
            await self._cancel_all()
            logger.info("Cancelled reminder notifications")
