"""Database models for the comment tree.

Each content item (novel, episode, chapter) owns a forest of comments. Nodes
live in an arena keyed by ``comment_id`` with explicit ``parent_id`` and
``children`` references; the forest shape (one parent per node, no cycles)
is kept by only ever appending freshly created ids to a parent.

Tables:
- comments_by_id: the node arena
- comments_by_content: top-level nodes per content, newest first
- comments_by_parent: direct replies per parent, newest first
- comment_tombstones: recently removed ids, expiring after a TTL
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_id (
    comment_id UUID PRIMARY KEY,
    content_id UUID,
    content_owner_id UUID,
    author_id UUID,
    text TEXT,
    is_reply BOOLEAN,
    parent_id UUID,
    thread_root_id UUID,
    children LIST<UUID>,
    created_at TIMESTAMP
)
"""

# Top-level comments only; replies are reached through their parent
COMMENTS_BY_CONTENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_content (
    content_id UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    PRIMARY KEY ((content_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id DESC)
"""

COMMENTS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_parent (
    parent_id UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    PRIMARY KEY ((parent_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id DESC)
"""

# Rows are written with USING TTL so they expire on their own
COMMENT_TOMBSTONES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_tombstones (
    comment_id UUID PRIMARY KEY,
    content_id UUID,
    removed_at TIMESTAMP
)
"""

COMMENTS_TABLES_CQL = [
    COMMENTS_BY_ID_TABLE_CQL,
    COMMENTS_BY_CONTENT_TABLE_CQL,
    COMMENTS_BY_PARENT_TABLE_CQL,
    COMMENT_TOMBSTONES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """A node of a content item's comment forest.

    ``thread_root_id`` is the id of the top-level ancestor (the node itself
    when top-level). It keys the lock that serializes writes to the thread.
    """

    comment_id: UUID
    content_id: UUID
    content_owner_id: UUID
    author_id: UUID
    text: str
    is_reply: bool
    parent_id: UUID | None
    thread_root_id: UUID
    children: list[UUID]
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            content_id=row.content_id,
            content_owner_id=row.content_owner_id,
            author_id=row.author_id,
            text=row.text,
            is_reply=bool(row.is_reply),
            parent_id=row.parent_id,
            thread_root_id=row.thread_root_id or row.comment_id,
            children=list(row.children or []),
            created_at=row.created_at,
        )


@dataclass(frozen=True)
class RemovedComment:
    """One node removed by a cascading delete."""

    comment_id: UUID
    content_id: UUID
    is_reply: bool


@dataclass
class SubtreeRemoval:
    """Outcome of removing a subtree, in post-order (leaves first)."""

    root_id: UUID
    removed: list[RemovedComment] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def removed_top_level_count(self) -> int:
        return sum(1 for node in self.removed if not node.is_reply)

    @property
    def removed_ids(self) -> list[UUID]:
        return [node.comment_id for node in self.removed]


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    content_id: UUID,
    content_owner_id: UUID,
    author_id: UUID,
    text: str,
    parent: Comment | None = None,
) -> Comment:
    """Create a new comment node, a reply when ``parent`` is given."""
    comment_id = uuid4()
    return Comment(
        comment_id=comment_id,
        content_id=content_id,
        content_owner_id=content_owner_id,
        author_id=author_id,
        text=text,
        is_reply=parent is not None,
        parent_id=parent.comment_id if parent else None,
        thread_root_id=parent.thread_root_id if parent else comment_id,
        children=[],
        created_at=datetime.now(UTC),
    )
