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
Key-Value Store Module

Byte-valued persistence the coordinator keeps its policy and schedule
state in. Values are opaque to the store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import asyncpg

from .errors import PersistenceFailure

logger = logging.getLogger("intake_reminder.store")


class KeyValueStore(ABC):
    """Contract for the persistence collaborator."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None if the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Store bytes under a key, replacing any previous value."""


class InMemoryStore(KeyValueStore):
    """Process-local store, for embedding and tests."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class PostgresStore(KeyValueStore):
    """
    Store backed by the reminder_kv table.

    Driver and connection errors are surfaced as PersistenceFailure.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        """
        Initialize the store.

        Args:
            db_pool: asyncpg connection pool
        """
        self.db = db_pool

    async def get(self, key: str) -> Optional[bytes]:
        try:
            row = await self.db.fetchrow(
                """
                SELECT value FROM reminder_kv
                WHERE key = $1
                """,
                key,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to read key '{key}': {e}")
            raise PersistenceFailure(f"Failed to read '{key}': {e}") from e

        return bytes(row["value"]) if row else None

    async def set(self, key: str, value: bytes) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO reminder_kv (key, value, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (key)
                DO UPDATE SET value = $2, updated_at = NOW()
                """,
                key,
                value,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to write key '{key}': {e}")
            raise PersistenceFailure(f"Failed to write '{key}': {e}") from e
