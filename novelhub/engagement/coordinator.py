"""Engagement event orchestration.

Runs each social event (comment, reply, delete, like, read) against the
comment store, the notification fan-out and the registry counters.

Protocol for every write:
1. Validate and authorize before anything is mutated.
2. Perform the primary write. Storage failures here surface as
   ``InternalError`` and nothing else is attempted.
3. Apply secondary effects (counters, comment refs, notifications) one by
   one. Each is best-effort: a failure is logged and reported back in the
   result's ``warnings``, and the primary write is kept.
"""

from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException
from cassandra.cluster import NoHostAvailable
from redis.exceptions import RedisError

from novelhub.comments.models import Comment, SubtreeRemoval
from novelhub.comments.store import CommentStore, SubtreeRemovalInterrupted
from novelhub.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from novelhub.notifications.service import NotificationFanout
from novelhub.registry.models import (
    ContentActivity,
    ContentCounter,
    UserActivity,
    UserCounter,
)
from novelhub.registry.service import ContentRegistry, UserRegistry

from .models import (
    AddCommentResult,
    CommentView,
    CounterReconciliation,
    DeleteCommentResult,
    RecordReadResult,
    ToggleLikeResult,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

    from novelhub.config.settings import Settings


logger = structlog.get_logger(__name__)

STORAGE_ERRORS = (DriverException, NoHostAvailable, RedisError)


class EngagementCoordinator:
    """Coordinates comments, notifications and activity counters."""

    def __init__(
        self,
        comments: CommentStore,
        notifications: NotificationFanout,
        contents: ContentRegistry,
        users: UserRegistry,
        verify_like_state: bool = False,
    ):
        self.comments = comments
        self.notifications = notifications
        self.contents = contents
        self.users = users
        self.verify_like_state = verify_like_state

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    @contextmanager
    def _primary(operation: str) -> Iterator[None]:
        """Translate storage failures of a primary step into ``InternalError``."""
        try:
            yield
        except STORAGE_ERRORS as e:
            logger.error(
                "engagement_primary_step_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InternalError(f"{operation} failed: storage unavailable") from e

    @staticmethod
    async def _best_effort(
        step: str, action: Awaitable[object], warnings: list[str], **context: str
    ) -> bool:
        try:
            await action
        except Exception as e:
            logger.warning(
                "engagement_side_effect_failed",
                step=step,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            warnings.append(step)
            return False
        return True

    async def _adjust_comment_counters(
        self,
        content_id: UUID,
        total_delta: int,
        top_level_delta: int,
        warnings: list[str],
    ) -> None:
        """Single place where comment events touch the content counters."""
        await self._best_effort(
            "content_total_comments",
            self.contents.apply_counter_delta(
                content_id, ContentCounter.TOTAL_COMMENTS, total_delta
            ),
            warnings,
            content_id=str(content_id),
        )
        await self._best_effort(
            "content_total_parent_comments",
            self.contents.apply_counter_delta(
                content_id, ContentCounter.TOTAL_PARENT_COMMENTS, top_level_delta
            ),
            warnings,
            content_id=str(content_id),
        )

    async def _settle_removal(
        self, content_id: UUID, removal: SubtreeRemoval, warnings: list[str]
    ) -> None:
        """Decrement counters and drop comment refs for the removed nodes."""
        if not removal.removed_count:
            return
        await self._adjust_comment_counters(
            content_id,
            -removal.removed_count,
            -removal.removed_top_level_count,
            warnings,
        )
        await self._best_effort(
            "content_comment_refs",
            self.contents.remove_comment_refs(content_id, removal.removed_ids),
            warnings,
            root_id=str(removal.root_id),
        )

    async def _notify_new_comment(self, comment: Comment) -> None:
        if not comment.is_reply:
            await self.notifications.notify_comment(
                content_id=comment.content_id,
                recipient_id=comment.content_owner_id,
                actor_id=comment.author_id,
                comment_id=comment.comment_id,
            )
            return

        # Replies go to the author of the comment being replied to
        parent = await self.comments.get(comment.parent_id)
        if parent is None:
            raise NotFoundError(f"Parent comment {comment.parent_id} not found")
        await self.notifications.notify_reply(
            content_id=comment.content_id,
            recipient_id=parent.author_id,
            actor_id=comment.author_id,
            comment_id=comment.comment_id,
            replied_to_id=parent.comment_id,
        )

    async def _with_authors(self, nodes: list[Comment]) -> list[CommentView]:
        profiles = await self.users.get_profiles([node.author_id for node in nodes])
        return [
            CommentView(comment=node, author=profiles.get(node.author_id))
            for node in nodes
        ]

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def add_comment(
        self,
        content_id: UUID,
        author_id: UUID,
        text: str,
        replying_to: UUID | None = None,
    ) -> AddCommentResult:
        """Create a comment or reply and apply its side effects.

        Raises:
            InvalidArgumentError: Empty text or parent on another content.
            NotFoundError: Unknown content, author or parent.
            InternalError: The comment could not be written.
        """
        if text is None or not text.strip():
            raise InvalidArgumentError("Comment text must not be empty")

        with self._primary("add_comment"):
            owner_id = await self.contents.get_owner(content_id)
            if not await self.users.exists(author_id):
                raise NotFoundError(f"User {author_id} not found")

            comment = await self.comments.insert(
                content_id=content_id,
                content_owner_id=owner_id,
                author_id=author_id,
                text=text,
                parent_id=replying_to,
            )

        warnings: list[str] = []
        context = {"comment_id": str(comment.comment_id)}

        await self._adjust_comment_counters(
            content_id, 1, 0 if comment.is_reply else 1, warnings
        )
        await self._best_effort(
            "content_comment_ref",
            self.contents.append_comment_ref(content_id, comment.comment_id),
            warnings,
            **context,
        )
        await self._best_effort(
            "user_total_comments",
            self.users.apply_counter_delta(author_id, UserCounter.TOTAL_COMMENTS, 1),
            warnings,
            **context,
        )
        await self._best_effort(
            "notification",
            self._notify_new_comment(comment),
            warnings,
            **context,
        )

        return AddCommentResult(comment=comment, warnings=warnings)

    async def list_top_level_comments(
        self, content_id: UUID, skip: int = 0, limit: int = 5
    ) -> list[CommentView]:
        with self._primary("list_top_level_comments"):
            nodes = await self.comments.list_top_level(content_id, skip, limit)
            return await self._with_authors(nodes)

    async def list_replies(
        self, parent_id: UUID, skip: int = 0, limit: int = 5
    ) -> list[CommentView]:
        with self._primary("list_replies"):
            nodes = await self.comments.list_children(parent_id, skip, limit)
            return await self._with_authors(nodes)

    async def delete_comment(
        self, requester_id: UUID, comment_id: UUID
    ) -> DeleteCommentResult:
        """Delete a comment and its whole reply subtree.

        Only the comment's author or the content's owner may delete. Deleting
        an id that was already removed (within the tombstone TTL) is a no-op.

        Raises:
            NotFoundError: The comment never existed or its tombstone expired.
            ForbiddenError: Requester is neither author nor content owner.
            InternalError: The subtree could not be fully removed. Counters
                already reflect the nodes that were; a retry removes the rest.
        """
        warnings: list[str] = []

        async def purge_notifications(node: Comment) -> None:
            await self._best_effort(
                "notification_purge",
                self.notifications.delete_for_comment(node.comment_id),
                warnings,
                comment_id=str(node.comment_id),
            )

        with self._primary("delete_comment"):
            target = await self.comments.get(comment_id)
            if target is None:
                if await self.comments.was_removed(comment_id):
                    logger.info("comment_already_removed", comment_id=str(comment_id))
                    return DeleteCommentResult(removed_count=0, removed_top_level_count=0)
                raise NotFoundError(f"Comment {comment_id} not found")

            if requester_id not in (target.author_id, target.content_owner_id):
                raise ForbiddenError("Only the author or the content owner may delete")

            try:
                removal = await self.comments.delete_subtree(
                    comment_id, on_remove=purge_notifications
                )
            except SubtreeRemovalInterrupted as e:
                # Account for the nodes already gone before reporting failure
                await self._settle_removal(target.content_id, e.removal, warnings)
                logger.error(
                    "comment_delete_interrupted",
                    comment_id=str(comment_id),
                    removed_count=e.removal.removed_count,
                    warnings=warnings,
                )
                raise InternalError(
                    f"delete_comment interrupted after removing "
                    f"{e.removal.removed_count} comments; retry to finish"
                ) from e

        await self._settle_removal(target.content_id, removal, warnings)

        return DeleteCommentResult(
            removed_count=removal.removed_count,
            removed_top_level_count=removal.removed_top_level_count,
            removed_ids=removal.removed_ids,
            warnings=warnings,
        )

    # ==========================================================================
    # Likes
    # ==========================================================================

    async def toggle_like(
        self, user_id: UUID, content_id: UUID, currently_liked: bool
    ) -> ToggleLikeResult:
        """Like or unlike a content item based on the caller's prior state.

        The like notification is the record behind ``is_liked_by_user``, so
        writing or deleting it is the primary step. The ``total_likes``
        counter follows as a best-effort step.

        Raises:
            NotFoundError: Unknown content.
            ConflictError: Prior-state verification is on and disagrees.
            InternalError: The like notification could not be written.
        """
        with self._primary("toggle_like"):
            owner_id = await self.contents.get_owner(content_id)

            if self.verify_like_state:
                stored = await self.notifications.is_liked_by_user(user_id, content_id)
                if stored != currently_liked:
                    raise ConflictError("Like state changed; refresh and try again")

            if currently_liked:
                await self.notifications.delete_like(user_id, content_id)
            else:
                await self.notifications.notify_like(
                    content_id=content_id, recipient_id=owner_id, actor_id=user_id
                )

        result = ToggleLikeResult(now_liked=not currently_liked)
        await self._best_effort(
            "content_total_likes",
            self.contents.apply_counter_delta(
                content_id, ContentCounter.TOTAL_LIKES, -1 if currently_liked else 1
            ),
            result.warnings,
            content_id=str(content_id),
        )

        logger.info(
            "content_like_toggled",
            content_id=str(content_id),
            now_liked=result.now_liked,
        )
        return result

    async def is_liked_by_user(self, user_id: UUID, content_id: UUID) -> bool:
        with self._primary("is_liked_by_user"):
            return await self.notifications.is_liked_by_user(user_id, content_id)

    # ==========================================================================
    # Notifications, reads and counters
    # ==========================================================================

    async def has_unseen_notifications(self, user_id: UUID) -> bool:
        with self._primary("has_unseen_notifications"):
            return await self.notifications.has_unseen(user_id)

    async def record_read(self, content_id: UUID) -> RecordReadResult:
        """Count one read on the content and on its publisher's account."""
        with self._primary("record_read"):
            publisher_id = await self.contents.get_owner(content_id)
            await self.contents.apply_counter_delta(
                content_id, ContentCounter.TOTAL_READS, 1
            )

        result = RecordReadResult(content_id=content_id, publisher_id=publisher_id)
        await self._best_effort(
            "user_total_reads",
            self.users.apply_counter_delta(publisher_id, UserCounter.TOTAL_READS, 1),
            result.warnings,
            content_id=str(content_id),
        )
        return result

    async def get_content_activity(self, content_id: UUID) -> ContentActivity:
        with self._primary("get_content_activity"):
            await self.contents.get_owner(content_id)
            return await self.contents.get_activity(content_id)

    async def get_user_activity(self, user_id: UUID) -> UserActivity:
        with self._primary("get_user_activity"):
            if not await self.users.exists(user_id):
                raise NotFoundError(f"User {user_id} not found")
            return await self.users.get_activity(user_id)

    async def reconcile_counters(self, content_id: UUID) -> CounterReconciliation:
        """Recount live comments and correct the content's comment counters.

        Meant for offline repair; events landing during the walk may need a
        second pass.
        """
        with self._primary("reconcile_counters"):
            await self.contents.get_owner(content_id)
            live_total, live_top_level = await self.comments.tally(content_id)
            activity = await self.contents.get_activity(content_id)

            reconciliation = CounterReconciliation(
                content_id=content_id,
                live_total=live_total,
                live_top_level=live_top_level,
                total_comments_delta=live_total - activity.total_comments,
                total_parent_comments_delta=(
                    live_top_level - activity.total_parent_comments
                ),
            )

            await self.contents.apply_counter_delta(
                content_id,
                ContentCounter.TOTAL_COMMENTS,
                reconciliation.total_comments_delta,
            )
            await self.contents.apply_counter_delta(
                content_id,
                ContentCounter.TOTAL_PARENT_COMMENTS,
                reconciliation.total_parent_comments_delta,
            )

        logger.info(
            "comment_counters_reconciled",
            content_id=str(content_id),
            live_total=live_total,
            live_top_level=live_top_level,
            changed=reconciliation.changed,
        )
        return reconciliation


def build_coordinator(
    session: "Session",
    settings: "Settings",
    redis: "Redis | None" = None,
) -> EngagementCoordinator:
    """Wire the Cassandra-backed collaborators into a coordinator."""
    keyspace = settings.cassandra_keyspace
    return EngagementCoordinator(
        comments=CommentStore(
            session,
            keyspace,
            redis=redis,
            tombstone_ttl_seconds=settings.comment_tombstone_ttl_seconds,
            lock_timeout=settings.subtree_lock_timeout,
            lock_blocking_timeout=settings.subtree_lock_blocking_timeout,
            max_text_length=settings.comment_max_length,
        ),
        notifications=NotificationFanout(session, keyspace, redis=redis),
        contents=ContentRegistry(session, keyspace),
        users=UserRegistry(session, keyspace),
        verify_like_state=settings.likes_verify_prior_state,
    )
