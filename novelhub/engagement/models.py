"""Result types returned by the engagement coordinator."""

from dataclasses import dataclass, field
from uuid import UUID

from novelhub.comments.models import Comment
from novelhub.registry.models import UserProfile


@dataclass
class AddCommentResult:
    """Created comment plus the secondary steps that failed, if any."""

    comment: Comment
    warnings: list[str] = field(default_factory=list)


@dataclass
class CommentView:
    """A comment with its author's display fields populated."""

    comment: Comment
    author: UserProfile | None = None


@dataclass
class DeleteCommentResult:
    removed_count: int
    removed_top_level_count: int
    removed_ids: list[UUID] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ToggleLikeResult:
    now_liked: bool
    warnings: list[str] = field(default_factory=list)


@dataclass
class CounterReconciliation:
    """Live comment counts and the correcting deltas applied to the counters."""

    content_id: UUID
    live_total: int
    live_top_level: int
    total_comments_delta: int
    total_parent_comments_delta: int

    @property
    def changed(self) -> bool:
        return bool(self.total_comments_delta or self.total_parent_comments_delta)


@dataclass
class RecordReadResult:
    content_id: UUID
    publisher_id: UUID
    warnings: list[str] = field(default_factory=list)
