"""Content and user registry services.

Thin Cassandra-backed collaborators for the engagement core. They resolve
content owners and user display fields, and apply counter deltas.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from novelhub.core.errors import NotFoundError

from .models import (
    ContentActivity,
    ContentCounter,
    UserActivity,
    UserCounter,
    UserProfile,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class ContentRegistry:
    """Registry of novels, episodes and chapters."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_publisher = self.session.prepare(f"""
            SELECT publisher_id FROM {self.keyspace}.contents WHERE content_id = ?
        """)

        self._append_comment_ref = self.session.prepare(f"""
            UPDATE {self.keyspace}.contents
            SET comment_ids = comment_ids + ?
            WHERE content_id = ?
        """)

        self._remove_comment_refs = self.session.prepare(f"""
            UPDATE {self.keyspace}.contents
            SET comment_ids = comment_ids - ?
            WHERE content_id = ?
        """)

        # One statement per counter column; CQL cannot bind column names
        self._counter_updates = {
            counter: self.session.prepare(f"""
                UPDATE {self.keyspace}.content_activity
                SET {counter.value} = {counter.value} + ?
                WHERE content_id = ?
            """)
            for counter in ContentCounter
        }

        self._get_activity = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.content_activity WHERE content_id = ?
        """)

    async def get_owner(self, content_id: UUID) -> UUID:
        """Resolve the publisher of a content item.

        Raises:
            NotFoundError: If the content does not exist.
        """
        rows = await self.session.aexecute(self._get_publisher, [content_id])
        row = rows.one()
        if row is None:
            raise NotFoundError(f"Content {content_id} not found")
        return row.publisher_id

    async def apply_counter_delta(
        self, content_id: UUID, counter: ContentCounter, delta: int
    ) -> None:
        """Add ``delta`` (possibly negative) to one activity counter."""
        if delta == 0:
            return
        await self.session.aexecute(
            self._counter_updates[counter], [delta, content_id]
        )
        logger.debug(
            "content_counter_applied",
            content_id=str(content_id),
            counter=counter.value,
            delta=delta,
        )

    async def append_comment_ref(self, content_id: UUID, comment_id: UUID) -> None:
        await self.session.aexecute(
            self._append_comment_ref, [[comment_id], content_id]
        )

    async def remove_comment_refs(
        self, content_id: UUID, comment_ids: list[UUID]
    ) -> None:
        if not comment_ids:
            return
        await self.session.aexecute(
            self._remove_comment_refs, [list(comment_ids), content_id]
        )

    async def get_activity(self, content_id: UUID) -> ContentActivity:
        rows = await self.session.aexecute(self._get_activity, [content_id])
        return ContentActivity.from_row(content_id, rows.one())


class UserRegistry:
    """Registry of user display fields and activity counters."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_user = self.session.prepare(f"""
            SELECT user_id, username, profile_img FROM {self.keyspace}.users
            WHERE user_id = ?
        """)

        self._get_users = self.session.prepare(f"""
            SELECT user_id, username, profile_img FROM {self.keyspace}.users
            WHERE user_id IN ?
        """)

        self._counter_updates = {
            counter: self.session.prepare(f"""
                UPDATE {self.keyspace}.user_activity
                SET {counter.value} = {counter.value} + ?
                WHERE user_id = ?
            """)
            for counter in UserCounter
        }

        self._get_activity = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.user_activity WHERE user_id = ?
        """)

    async def get_profile(self, user_id: UUID) -> UserProfile | None:
        rows = await self.session.aexecute(self._get_user, [user_id])
        row = rows.one()
        return UserProfile.from_row(row) if row else None

    async def exists(self, user_id: UUID) -> bool:
        return await self.get_profile(user_id) is not None

    async def get_profiles(self, user_ids: list[UUID]) -> dict[UUID, UserProfile]:
        """Batch-load display fields, keyed by user id.

        Unknown ids are simply absent from the result.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}
        rows = await self.session.aexecute(self._get_users, [unique_ids])
        profiles = [UserProfile.from_row(row) for row in rows]
        return {profile.user_id: profile for profile in profiles}

    async def apply_counter_delta(
        self, user_id: UUID, counter: UserCounter, delta: int
    ) -> None:
        if delta == 0:
            return
        await self.session.aexecute(self._counter_updates[counter], [delta, user_id])
        logger.debug(
            "user_counter_applied",
            user_id=str(user_id),
            counter=counter.value,
            delta=delta,
        )

    async def get_activity(self, user_id: UUID) -> UserActivity:
        rows = await self.session.aexecute(self._get_activity, [user_id])
        return UserActivity.from_row(user_id, rows.one())
