"""Database models for engagement notifications.

A notification records one comment, reply or like event for its recipient:
- comment: sent to the content owner, anchored on the new comment
- reply: sent to the parent comment's author, anchored on both the new
  comment and the comment it replies to
- like: sent to the content owner, keyed by (actor, content)

The anchor table lets a comment delete purge every notification that
references it from either side.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class NotificationType(str, Enum):
    """Types of engagement notifications."""

    COMMENT = "comment"
    REPLY = "reply"
    LIKE = "like"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Recipient inbox, newest first
NOTIFICATIONS_BY_RECIPIENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications_by_recipient (
    recipient_id UUID,
    created_at TIMESTAMP,
    notification_id UUID,
    type TEXT,
    content_id UUID,
    actor_id UUID,
    comment_id UUID,
    replied_to_id UUID,
    seen BOOLEAN,
    PRIMARY KEY ((recipient_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

# One row per (anchor comment, notification); a reply has two anchors
NOTIFICATIONS_BY_ANCHOR_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications_by_anchor (
    anchor_id UUID,
    notification_id UUID,
    type TEXT,
    content_id UUID,
    recipient_id UUID,
    actor_id UUID,
    comment_id UUID,
    replied_to_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((anchor_id), notification_id)
)
"""

# Like notifications per (actor, content), oldest first
LIKE_NOTIFICATIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.like_notifications (
    actor_id UUID,
    content_id UUID,
    created_at TIMESTAMP,
    notification_id UUID,
    recipient_id UUID,
    PRIMARY KEY ((actor_id, content_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at ASC, notification_id ASC)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATIONS_BY_RECIPIENT_TABLE_CQL,
    NOTIFICATIONS_BY_ANCHOR_TABLE_CQL,
    LIKE_NOTIFICATIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Notification:
    """Notification entity."""

    notification_id: UUID
    type: NotificationType
    content_id: UUID
    recipient_id: UUID
    actor_id: UUID
    comment_id: UUID | None
    replied_to_id: UUID | None
    seen: bool
    created_at: datetime

    @property
    def anchors(self) -> list[UUID]:
        """Comment ids whose deletion must purge this notification."""
        return [
            anchor for anchor in (self.comment_id, self.replied_to_id) if anchor
        ]

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from an inbox or anchor row."""
        return cls(
            notification_id=row.notification_id,
            type=NotificationType(row.type),
            content_id=row.content_id,
            recipient_id=row.recipient_id,
            actor_id=row.actor_id,
            comment_id=row.comment_id,
            replied_to_id=row.replied_to_id,
            seen=bool(getattr(row, "seen", False)),
            created_at=row.created_at,
        )

    @classmethod
    def from_like_row(cls, row: Any) -> "Notification":
        return cls(
            notification_id=row.notification_id,
            type=NotificationType.LIKE,
            content_id=row.content_id,
            recipient_id=row.recipient_id,
            actor_id=row.actor_id,
            comment_id=None,
            replied_to_id=None,
            seen=False,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": str(self.notification_id),
            "type": self.type.value,
            "content_id": str(self.content_id),
            "recipient_id": str(self.recipient_id),
            "actor_id": str(self.actor_id),
            "comment_id": str(self.comment_id) if self.comment_id else None,
            "replied_to_id": str(self.replied_to_id) if self.replied_to_id else None,
            "seen": self.seen,
            "created_at": self.created_at.isoformat(),
        }


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_notification(
    notification_type: NotificationType,
    content_id: UUID,
    recipient_id: UUID,
    actor_id: UUID,
    comment_id: UUID | None = None,
    replied_to_id: UUID | None = None,
) -> Notification:
    """Create a new, unseen notification."""
    return Notification(
        notification_id=uuid4(),
        type=notification_type,
        content_id=content_id,
        recipient_id=recipient_id,
        actor_id=actor_id,
        comment_id=comment_id,
        replied_to_id=replied_to_id,
        seen=False,
        created_at=datetime.now(UTC),
    )
