"""Comment tree storage.

Owns the comment nodes: insert, paginated listing of top-level comments and
of direct replies, and cascading subtree removal.

Writes to one thread (a top-level comment and everything under it) are
serialized by ``SubtreeLocks`` keyed on the thread root, so a reply can never
be attached to a node that a concurrent delete is removing.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from novelhub.core.errors import InvalidArgumentError, NotFoundError
from novelhub.core.locks import SubtreeLocks

from .models import Comment, RemovedComment, SubtreeRemoval, create_comment


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)

RemovalHook = Callable[[Comment], Awaitable[None]]


class SubtreeRemovalInterrupted(Exception):
    """A cascading delete stopped after removing some nodes.

    ``removal`` lists the nodes that are already gone; the cause is chained.
    """

    def __init__(self, removal: SubtreeRemoval):
        self.removal = removal
        super().__init__(
            f"Removal of {removal.root_id} stopped after "
            f"{removal.removed_count} comments"
        )


class CommentStore:
    """Cassandra-backed arena of comment nodes.

    The storage primitives (``get``, ``_write``, ``_append_child``,
    ``_pull_child``, ``_drop``, ``was_removed``, ``_top_level_ids`` and
    ``_child_ids``) are the only methods touching the session; everything
    else is expressed in terms of them.
    """

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "Redis | None" = None,
        tombstone_ttl_seconds: int = 604800,
        lock_timeout: float = 30.0,
        lock_blocking_timeout: float = 10.0,
        max_text_length: int = 10000,
    ):
        self.session = session
        self.keyspace = keyspace
        self.tombstone_ttl_seconds = tombstone_ttl_seconds
        self.max_text_length = max_text_length
        self.locks = SubtreeLocks(
            redis, timeout=lock_timeout, blocking_timeout=lock_blocking_timeout
        )
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._insert_node = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_id
            (comment_id, content_id, content_owner_id, author_id, text,
             is_reply, parent_id, thread_root_id, children, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_node = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_id WHERE comment_id = ?
        """)

        self._delete_node = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_id WHERE comment_id = ?
        """)

        self._append_child_id = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments_by_id
            SET children = children + ?
            WHERE comment_id = ?
        """)

        self._remove_child_id = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments_by_id
            SET children = children - ?
            WHERE comment_id = ?
        """)

        # Top-level index
        self._insert_top_level = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_content
            (content_id, created_at, comment_id)
            VALUES (?, ?, ?)
        """)

        self._delete_top_level = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_content
            WHERE content_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._get_top_level_page = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comments_by_content
            WHERE content_id = ?
            LIMIT ?
        """)

        self._get_top_level_all = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comments_by_content
            WHERE content_id = ?
        """)

        # Reply index
        self._insert_reply = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_parent
            (parent_id, created_at, comment_id)
            VALUES (?, ?, ?)
        """)

        self._delete_reply = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._get_reply_page = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ?
            LIMIT ?
        """)

        self._get_replies_all = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ?
        """)

        # Tombstones
        self._insert_tombstone = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_tombstones
            (comment_id, content_id, removed_at)
            VALUES (?, ?, ?)
            USING TTL ?
        """)

        self._get_tombstone = self.session.prepare(f"""
            SELECT comment_id FROM {self.keyspace}.comment_tombstones
            WHERE comment_id = ?
        """)

    # ==========================================================================
    # Storage primitives
    # ==========================================================================

    async def get(self, comment_id: UUID) -> Comment | None:
        rows = await self.session.aexecute(self._get_node, [comment_id])
        row = rows.one()
        return Comment.from_row(row) if row else None

    async def _write(self, comment: Comment) -> None:
        """Persist a new node, then its listing index row."""
        await self.session.aexecute(
            self._insert_node,
            [
                comment.comment_id,
                comment.content_id,
                comment.content_owner_id,
                comment.author_id,
                comment.text,
                comment.is_reply,
                comment.parent_id,
                comment.thread_root_id,
                comment.children,
                comment.created_at,
            ],
        )
        if comment.is_reply:
            await self.session.aexecute(
                self._insert_reply,
                [comment.parent_id, comment.created_at, comment.comment_id],
            )
        else:
            await self.session.aexecute(
                self._insert_top_level,
                [comment.content_id, comment.created_at, comment.comment_id],
            )

    async def _append_child(self, parent_id: UUID, child_id: UUID) -> None:
        await self.session.aexecute(self._append_child_id, [[child_id], parent_id])

    async def _pull_child(self, node: Comment) -> None:
        """Remove ``node`` from its parent's ``children``."""
        await self.session.aexecute(
            self._remove_child_id, [[node.comment_id], node.parent_id]
        )

    async def _drop(self, node: Comment) -> None:
        """Delete the node row and its listing index row, then leave a tombstone."""
        await self.session.aexecute(self._delete_node, [node.comment_id])
        if node.is_reply:
            await self.session.aexecute(
                self._delete_reply,
                [node.parent_id, node.created_at, node.comment_id],
            )
        else:
            await self.session.aexecute(
                self._delete_top_level,
                [node.content_id, node.created_at, node.comment_id],
            )
        await self.session.aexecute(
            self._insert_tombstone,
            [
                node.comment_id,
                node.content_id,
                datetime.now(UTC),
                self.tombstone_ttl_seconds,
            ],
        )

    async def was_removed(self, comment_id: UUID) -> bool:
        """Whether ``comment_id`` was removed within the tombstone TTL."""
        rows = await self.session.aexecute(self._get_tombstone, [comment_id])
        return rows.one() is not None

    async def _top_level_ids(
        self, content_id: UUID, fetch: int | None
    ) -> list[UUID]:
        """Ids of top-level comments, newest first; all of them if ``fetch`` is None."""
        if fetch is None:
            rows = await self.session.aexecute(self._get_top_level_all, [content_id])
        else:
            rows = await self.session.aexecute(
                self._get_top_level_page, [content_id, fetch]
            )
        return [row.comment_id for row in rows]

    async def _child_ids(self, parent_id: UUID, fetch: int | None) -> list[UUID]:
        """Ids of direct replies, newest first; all of them if ``fetch`` is None."""
        if fetch is None:
            rows = await self.session.aexecute(self._get_replies_all, [parent_id])
        else:
            rows = await self.session.aexecute(
                self._get_reply_page, [parent_id, fetch]
            )
        return [row.comment_id for row in rows]

    # ==========================================================================
    # Operations
    # ==========================================================================

    def _validate_text(self, text: str | None) -> str:
        if text is None or not text.strip():
            raise InvalidArgumentError("Comment text must not be empty")
        if len(text) > self.max_text_length:
            raise InvalidArgumentError(
                f"Comment text exceeds {self.max_text_length} characters"
            )
        return text

    @staticmethod
    def _validate_page(skip: int, limit: int) -> None:
        if skip < 0:
            raise InvalidArgumentError("skip must be >= 0")
        if limit < 1:
            raise InvalidArgumentError("limit must be >= 1")

    async def insert(
        self,
        content_id: UUID,
        content_owner_id: UUID,
        author_id: UUID,
        text: str,
        parent_id: UUID | None = None,
    ) -> Comment:
        """Create a top-level comment, or a reply when ``parent_id`` is set.

        Raises:
            InvalidArgumentError: Empty text, or parent on another content.
            NotFoundError: Parent does not exist (or was removed meanwhile).
        """
        text = self._validate_text(text)

        if parent_id is None:
            comment = create_comment(content_id, content_owner_id, author_id, text)
            await self._write(comment)
            logger.info(
                "comment_created",
                comment_id=str(comment.comment_id),
                content_id=str(content_id),
                is_reply=False,
            )
            return comment

        parent = await self.get(parent_id)
        if parent is None:
            raise NotFoundError(f"Parent comment {parent_id} not found")
        if parent.content_id != content_id:
            raise InvalidArgumentError(
                "Parent comment belongs to a different content item"
            )

        async with self.locks.hold(parent.thread_root_id):
            # A delete of this thread may have completed while we waited
            parent = await self.get(parent_id)
            if parent is None:
                raise NotFoundError(f"Parent comment {parent_id} not found")

            comment = create_comment(
                content_id, content_owner_id, author_id, text, parent=parent
            )
            await self._write(comment)
            await self._append_child(parent.comment_id, comment.comment_id)

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            content_id=str(content_id),
            parent_id=str(parent_id),
            is_reply=True,
        )
        return comment

    async def _children_of(self, node: Comment) -> list[UUID]:
        # Union with the reply index picks up children already unlinked by an
        # interrupted delete
        ids = list(node.children)
        known = set(ids)
        for child_id in await self._child_ids(node.comment_id, None):
            if child_id not in known:
                known.add(child_id)
                ids.append(child_id)
        return ids

    async def _load_many(self, comment_ids: list[UUID]) -> list[Comment]:
        nodes = []
        for comment_id in comment_ids:
            node = await self.get(comment_id)
            if node is not None:
                nodes.append(node)
        return nodes

    async def list_top_level(
        self, content_id: UUID, skip: int = 0, limit: int = 5
    ) -> list[Comment]:
        """Page of top-level comments of a content item, newest first."""
        self._validate_page(skip, limit)
        ids = await self._top_level_ids(content_id, skip + limit)
        nodes = await self._load_many(ids[skip : skip + limit])
        return [node for node in nodes if not node.is_reply]

    async def list_children(
        self, parent_id: UUID, skip: int = 0, limit: int = 5
    ) -> list[Comment]:
        """Page of the direct replies of ``parent_id``, newest first."""
        self._validate_page(skip, limit)
        ids = await self._child_ids(parent_id, skip + limit)
        return await self._load_many(ids[skip : skip + limit])

    async def delete_subtree(
        self, root_id: UUID, on_remove: RemovalHook | None = None
    ) -> SubtreeRemoval:
        """Remove ``root_id`` and every descendant, children before parents.

        For each node, in post-order: unlink it from its parent, await
        ``on_remove(node)``, then delete it. Ids that are already gone are
        skipped, so re-running an interrupted delete finishes the job.

        Returns:
            The removed nodes in removal order. Empty if ``root_id`` is absent.

        Raises:
            SubtreeRemovalInterrupted: A failure after at least one node was
                removed. Failures before that propagate unchanged.
        """
        removal = SubtreeRemoval(root_id=root_id)

        root = await self.get(root_id)
        if root is None:
            return removal

        try:
            async with self.locks.hold(root.thread_root_id):
                root = await self.get(root_id)
                if root is None:
                    return removal
                await self._remove_post_order(root, removal, on_remove)
        except Exception as e:
            if not removal.removed:
                raise
            logger.exception(
                "comment_subtree_removal_interrupted",
                root_id=str(root_id),
                removed_count=removal.removed_count,
            )
            raise SubtreeRemovalInterrupted(removal) from e

        logger.info(
            "comment_subtree_removed",
            root_id=str(root_id),
            content_id=str(root.content_id),
            removed_count=removal.removed_count,
            removed_top_level_count=removal.removed_top_level_count,
        )
        return removal

    async def _remove_post_order(
        self,
        root: Comment,
        removal: SubtreeRemoval,
        on_remove: RemovalHook | None,
    ) -> None:
        # Explicit stack: deep reply chains must not hit the recursion limit
        stack: list[tuple[Comment, bool]] = [(root, False)]
        visited = {root.comment_id}

        while stack:
            node, expanded = stack.pop()

            if expanded:
                if node.parent_id is not None:
                    await self._pull_child(node)
                if on_remove is not None:
                    await on_remove(node)
                await self._drop(node)
                removal.removed.append(
                    RemovedComment(
                        comment_id=node.comment_id,
                        content_id=node.content_id,
                        is_reply=node.is_reply,
                    )
                )
                continue

            stack.append((node, True))
            for child_id in reversed(await self._children_of(node)):
                if child_id in visited:
                    logger.warning(
                        "comment_child_revisited",
                        comment_id=str(child_id),
                        parent_id=str(node.comment_id),
                    )
                    continue
                visited.add(child_id)

                child = await self.get(child_id)
                if child is None:
                    continue
                if child.parent_id != node.comment_id:
                    logger.warning(
                        "comment_child_parent_mismatch",
                        comment_id=str(child_id),
                        listed_under=str(node.comment_id),
                        parent_id=str(child.parent_id),
                    )
                    continue
                stack.append((child, False))

    async def tally(self, content_id: UUID) -> tuple[int, int]:
        """Count live nodes of a content item.

        Returns:
            ``(total, top_level)`` found by walking every thread.
        """
        root_ids = await self._top_level_ids(content_id, None)
        total = 0
        top_level = 0

        for root_id in root_ids:
            root = await self.get(root_id)
            if root is None or root.is_reply:
                continue
            top_level += 1
            pending = [root]
            seen = {root.comment_id}
            while pending:
                node = pending.pop()
                total += 1
                for child_id in await self._children_of(node):
                    if child_id in seen:
                        continue
                    seen.add(child_id)
                    child = await self.get(child_id)
                    if child is not None and child.parent_id == node.comment_id:
                        pending.append(child)

        return total, top_level
