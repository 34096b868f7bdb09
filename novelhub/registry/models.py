"""Database models for the content and user registries.

Novels, episodes, chapters and user accounts are created by the publishing
and account services. The engagement core only reads three things from them:
who published a content item, display fields for users, and the activity
counters.

Counters live in Cassandra COUNTER tables so every mutation is a relative
delta applied atomically by the database, never a read-modify-write.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID


class ContentCounter(str, Enum):
    """Activity counters embedded in content documents."""

    TOTAL_COMMENTS = "total_comments"
    TOTAL_PARENT_COMMENTS = "total_parent_comments"
    TOTAL_LIKES = "total_likes"
    TOTAL_READS = "total_reads"


class UserCounter(str, Enum):
    """Activity counters embedded in the user document."""

    TOTAL_COMMENTS = "total_comments"
    TOTAL_READS = "total_reads"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CONTENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.contents (
    content_id UUID PRIMARY KEY,
    content_type TEXT,
    publisher_id UUID,
    title TEXT,
    belonged_to UUID,
    comment_ids LIST<UUID>,
    published_at TIMESTAMP
)
"""

# Counter tables may only hold counter columns besides the key
CONTENT_ACTIVITY_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_activity (
    content_id UUID PRIMARY KEY,
    total_comments COUNTER,
    total_parent_comments COUNTER,
    total_likes COUNTER,
    total_reads COUNTER
)
"""

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    username TEXT,
    profile_img TEXT,
    joined_at TIMESTAMP
)
"""

USER_ACTIVITY_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_activity (
    user_id UUID PRIMARY KEY,
    total_comments COUNTER,
    total_reads COUNTER
)
"""

REGISTRY_TABLES_CQL = [
    CONTENTS_TABLE_CQL,
    CONTENT_ACTIVITY_TABLE_CQL,
    USERS_TABLE_CQL,
    USER_ACTIVITY_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class ContentActivity:
    """Denormalized activity counters of a content item."""

    content_id: UUID
    total_comments: int = 0
    total_parent_comments: int = 0
    total_likes: int = 0
    total_reads: int = 0

    @classmethod
    def from_row(cls, content_id: UUID, row: Any | None) -> "ContentActivity":
        """Create from a counter row; a missing row means all zeros."""
        if row is None:
            return cls(content_id=content_id)
        return cls(
            content_id=content_id,
            total_comments=row.total_comments or 0,
            total_parent_comments=row.total_parent_comments or 0,
            total_likes=row.total_likes or 0,
            total_reads=row.total_reads or 0,
        )


@dataclass
class UserProfile:
    """Display fields used when populating comment authors."""

    user_id: UUID
    username: str
    profile_img: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> "UserProfile":
        """Create UserProfile from Cassandra row."""
        return cls(
            user_id=row.user_id,
            username=row.username or "",
            profile_img=row.profile_img,
        )


@dataclass
class UserActivity:
    """Denormalized activity counters of a user."""

    user_id: UUID
    total_comments: int = 0
    total_reads: int = 0

    @classmethod
    def from_row(cls, user_id: UUID, row: Any | None) -> "UserActivity":
        if row is None:
            return cls(user_id=user_id)
        return cls(
            user_id=user_id,
            total_comments=row.total_comments or 0,
            total_reads=row.total_reads or 0,
        )

