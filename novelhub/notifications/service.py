"""Notification fan-out for comment, reply and like events.

Every ``notify_*`` call writes exactly one notification; there is no
deduplication. New notifications are also published on the recipient's
Redis channel when Redis is available.
"""

import contextlib
import json
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from novelhub.core.redis import notification_channel

from .models import Notification, NotificationType, create_notification


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class NotificationFanout:
    """Creates, purges and checks engagement notifications.

    Storage goes through five primitives (``_insert``, ``_remove``,
    ``_anchored``, ``_likes``, ``_unseen_actor_ids``).
    """

    def __init__(self, session: "Session", keyspace: str, redis: "Redis | None" = None):
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        # Inbox
        self._insert_inbox = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications_by_recipient
            (recipient_id, created_at, notification_id, type, content_id,
             actor_id, comment_id, replied_to_id, seen)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_inbox = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.notifications_by_recipient
            WHERE recipient_id = ? AND created_at = ? AND notification_id = ?
        """)

        # Partition-local filter on a regular column
        self._get_unseen_actors = self.session.prepare(f"""
            SELECT actor_id FROM {self.keyspace}.notifications_by_recipient
            WHERE recipient_id = ? AND seen = false
            ALLOW FILTERING
        """)

        # Anchors
        self._insert_anchor = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications_by_anchor
            (anchor_id, notification_id, type, content_id, recipient_id,
             actor_id, comment_id, replied_to_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_anchored = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.notifications_by_anchor
            WHERE anchor_id = ?
        """)

        self._delete_anchor = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.notifications_by_anchor
            WHERE anchor_id = ? AND notification_id = ?
        """)

        # Likes
        self._insert_like = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.like_notifications
            (actor_id, content_id, created_at, notification_id, recipient_id)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_likes = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.like_notifications
            WHERE actor_id = ? AND content_id = ?
        """)

        self._delete_like = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.like_notifications
            WHERE actor_id = ? AND content_id = ?
            AND created_at = ? AND notification_id = ?
        """)

    # ==========================================================================
    # Storage primitives
    # ==========================================================================

    async def _insert(self, notification: Notification) -> None:
        n = notification
        await self.session.aexecute(
            self._insert_inbox,
            [
                n.recipient_id,
                n.created_at,
                n.notification_id,
                n.type.value,
                n.content_id,
                n.actor_id,
                n.comment_id,
                n.replied_to_id,
                n.seen,
            ],
        )
        for anchor_id in n.anchors:
            await self.session.aexecute(
                self._insert_anchor,
                [
                    anchor_id,
                    n.notification_id,
                    n.type.value,
                    n.content_id,
                    n.recipient_id,
                    n.actor_id,
                    n.comment_id,
                    n.replied_to_id,
                    n.created_at,
                ],
            )
        if n.type == NotificationType.LIKE:
            await self.session.aexecute(
                self._insert_like,
                [
                    n.actor_id,
                    n.content_id,
                    n.created_at,
                    n.notification_id,
                    n.recipient_id,
                ],
            )

    async def _remove(self, notification: Notification) -> None:
        n = notification
        await self.session.aexecute(
            self._delete_inbox, [n.recipient_id, n.created_at, n.notification_id]
        )
        for anchor_id in n.anchors:
            await self.session.aexecute(
                self._delete_anchor, [anchor_id, n.notification_id]
            )
        if n.type == NotificationType.LIKE:
            await self.session.aexecute(
                self._delete_like,
                [n.actor_id, n.content_id, n.created_at, n.notification_id],
            )

    async def _anchored(self, anchor_id: UUID) -> list[Notification]:
        rows = await self.session.aexecute(self._get_anchored, [anchor_id])
        return [Notification.from_row(row) for row in rows]

    async def _likes(self, actor_id: UUID, content_id: UUID) -> list[Notification]:
        """Like notifications of ``actor_id`` on ``content_id``, oldest first."""
        rows = await self.session.aexecute(self._get_likes, [actor_id, content_id])
        return [Notification.from_like_row(row) for row in rows]

    async def _unseen_actor_ids(self, recipient_id: UUID) -> list[UUID]:
        rows = await self.session.aexecute(self._get_unseen_actors, [recipient_id])
        return [row.actor_id for row in rows]

    # ==========================================================================
    # Fan-out
    # ==========================================================================

    async def _emit(self, notification: Notification) -> Notification:
        await self._insert(notification)
        logger.info(
            "notification_created",
            notification_id=str(notification.notification_id),
            type=notification.type.value,
            recipient_id=str(notification.recipient_id),
            content_id=str(notification.content_id),
        )
        await self._publish(notification)
        return notification

    async def _publish(self, notification: Notification) -> None:
        """Push the notification to the recipient's real-time channel."""
        if not self.redis:
            return

        channel = notification_channel(str(notification.recipient_id))
        message = {"type": "notification", "data": notification.to_dict()}

        # Real-time delivery is optional; the stored record is authoritative
        with contextlib.suppress(Exception):
            await self.redis.publish(channel, json.dumps(message))

    async def notify_comment(
        self, content_id: UUID, recipient_id: UUID, actor_id: UUID, comment_id: UUID
    ) -> Notification:
        return await self._emit(
            create_notification(
                NotificationType.COMMENT,
                content_id=content_id,
                recipient_id=recipient_id,
                actor_id=actor_id,
                comment_id=comment_id,
            )
        )

    async def notify_reply(
        self,
        content_id: UUID,
        recipient_id: UUID,
        actor_id: UUID,
        comment_id: UUID,
        replied_to_id: UUID,
    ) -> Notification:
        return await self._emit(
            create_notification(
                NotificationType.REPLY,
                content_id=content_id,
                recipient_id=recipient_id,
                actor_id=actor_id,
                comment_id=comment_id,
                replied_to_id=replied_to_id,
            )
        )

    async def notify_like(
        self, content_id: UUID, recipient_id: UUID, actor_id: UUID
    ) -> Notification:
        return await self._emit(
            create_notification(
                NotificationType.LIKE,
                content_id=content_id,
                recipient_id=recipient_id,
                actor_id=actor_id,
            )
        )

    # ==========================================================================
    # Purge and queries
    # ==========================================================================

    async def delete_for_comment(self, comment_id: UUID) -> int:
        """Delete every notification whose comment or replied-to ref is ``comment_id``.

        Returns:
            Number of distinct notifications deleted.
        """
        deleted = 0
        for notification in await self._anchored(comment_id):
            await self._remove(notification)
            deleted += 1

        if deleted:
            logger.info(
                "notifications_purged", comment_id=str(comment_id), count=deleted
            )
        return deleted

    async def delete_like(self, actor_id: UUID, content_id: UUID) -> bool:
        """Delete one like notification of ``actor_id`` on ``content_id``.

        Returns:
            True if a notification was deleted.
        """
        likes = await self._likes(actor_id, content_id)
        if not likes:
            return False
        await self._remove(likes[0])
        return True

    async def is_liked_by_user(self, user_id: UUID, content_id: UUID) -> bool:
        return bool(await self._likes(user_id, content_id))

    async def has_unseen(self, user_id: UUID) -> bool:
        """True iff ``user_id`` has an unseen notification caused by someone else."""
        actor_ids = await self._unseen_actor_ids(user_id)
        return any(actor_id != user_id for actor_id in actor_ids)
