"""
Marie Reconciliation - Data Managers

PURPOSE: Durable state for reconciliation sessions and the category registry
SCOPE: Load/save of the two JSON records and the category rename cascade
DEPENDENCIES: json, asyncio, database (persistence port), models
"""

import json
import asyncio
import logging
from typing import List, Optional

from .models import ReconcileSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the list of confirmed sessions, newest first."""

    def __init__(self, storage, key: str):
        self.storage = storage
        self.key = key
        self._sessions: List[ReconcileSession] = []
        self._write_lock = asyncio.Lock()

    async def load(self) -> List[ReconcileSession]:
        """Read the sessions record; missing or corrupt state degrades, never raises.

        An unreadable record yields an empty list. Individual sessions that
        cannot be parsed are skipped.
        """
        try:
            raw = await self.storage.read(self.key)
        except Exception as e:
            logger.warning(f"Could not read stored sessions: {e}")
            raw = None

        sessions = []
        if raw:
            try:
                data = json.loads(raw)
                if not isinstance(data, list):
                    raise ValueError("sessions record is not a list")
            except ValueError as e:
                logger.warning(f"Discarding unreadable sessions record: {e}")
                data = []

            for index, item in enumerate(data):
                try:
                    sessions.append(ReconcileSession.from_dict(item))
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    logger.warning(f"Skipping unreadable stored session {index}: {e}")

        self._sessions = sessions
        logger.info(f"Loaded {len(sessions)} reconciliation session(s)")
        return self.all()

    async def append(self, session: ReconcileSession) -> None:
        """Insert a session at the head of the list and persist."""
        self._sessions.insert(0, session)
        await self._save()
        logger.info(f"Saved session {session.id} with {len(session.transactions)} transaction(s)")

    async def apply_category_rename(self, old_name: str, new_name: str) -> int:
        """Rewrite ``old_name`` to ``new_name`` on every stored transaction.

        Amounts, totals and ordering are untouched. Returns the number of
        transactions changed.
        """
        changed = 0
        for session in self._sessions:
            for transaction in session.transactions:
                if transaction.category == old_name:
                    transaction.category = new_name
                    changed += 1

        if changed:
            await self._save()
            logger.info(f"Category rename '{old_name}' -> '{new_name}' updated {changed} transaction(s)")
        return changed

    def all(self) -> List[ReconcileSession]:
        return list(self._sessions)

    def get(self, session_id: str) -> Optional[ReconcileSession]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    async def _save(self) -> None:
        # Snapshot under the lock so the last write always holds the newest state
        async with self._write_lock:
            payload = json.dumps([s.to_dict() for s in self._sessions], ensure_ascii=False)
            await self.storage.write(self.key, payload)


class CategoryManager:
    """Handles the ordered, user-editable list of categories."""

    def __init__(self, storage, key: str, default_categories: List[str],
                 session_manager: SessionManager):
        self.storage = storage
        self.key = key
        self.default_categories = list(default_categories)
        self.session_manager = session_manager
        self._categories: List[str] = []
        self._write_lock = asyncio.Lock()

    async def load(self) -> List[str]:
        """Read the categories record, seeding the defaults on first run.

        Only an absent record is seeded and written. A failed read or a
        malformed record falls back to the defaults in memory and leaves
        storage untouched.
        """
        try:
            raw = await self.storage.read(self.key)
        except Exception as e:
            logger.warning(f"Could not read stored categories: {e}")
            self._categories = list(self.default_categories)
            return self.all()

        if not raw:
            self._categories = list(self.default_categories)
            await self._save()
            return self.all()

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable categories record: {e}")
            data = None

        if isinstance(data, list) and all(isinstance(c, str) for c in data):
            self._categories = list(dict.fromkeys(data))
        else:
            logger.warning("Using default categories; stored record is malformed")
            self._categories = list(self.default_categories)
        return self.all()

    def all(self) -> List[str]:
        return list(self._categories)

    async def add_category(self, name: str) -> bool:
        """Append a category; returns False if it already exists."""
        if name in self._categories:
            return False
        self._categories.append(name)
        await self._save()
        return True

    async def rename_category(self, old_name: str, new_name: str) -> bool:
        """Rename in place and cascade into every stored transaction.

        Returns False only when ``old_name`` is not registered; renaming a
        category to itself succeeds without changing anything.
        """
        if old_name not in self._categories:
            return False
        if old_name == new_name:
            return True

        position = self._categories.index(old_name)
        if new_name in self._categories:
            # Both names collapse into the existing entry
            del self._categories[position]
        else:
            self._categories[position] = new_name
        await self._save()

        await self.session_manager.apply_category_rename(old_name, new_name)
        return True

    async def delete_category(self, name: str) -> bool:
        """Remove a category; transactions already using it keep the name."""
        if name not in self._categories:
            return False
        self._categories.remove(name)
        await self._save()
        return True

    async def _save(self) -> None:
        async with self._write_lock:
            await self.storage.write(self.key, json.dumps(self._categories, ensure_ascii=False))
