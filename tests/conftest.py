"""Shared fixtures.

The in-memory store and fan-out subclass the real services and override only
their storage primitives, so every traversal, locking and
validation path under test is the production one. Each primitive yields to
the event loop once, which lets concurrent tasks interleave.
"""

import asyncio
import itertools
from dataclasses import replace
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session
from fastapi.testclient import TestClient

from novelhub.auth.security import create_access_token
from novelhub.comments.models import Comment
from novelhub.comments.store import CommentStore
from novelhub.core.errors import NotFoundError
from novelhub.engagement.coordinator import EngagementCoordinator
from novelhub.notifications.models import Notification, NotificationType
from novelhub.notifications.service import NotificationFanout
from novelhub.registry.models import (
    ContentActivity,
    ContentCounter,
    UserActivity,
    UserCounter,
    UserProfile,
)


# ==============================================================================
# In-memory comment store
# ==============================================================================


class InMemoryCommentStore(CommentStore):
    def __init__(self, **kwargs):
        super().__init__(session=Mock(spec=Session), keyspace="test_keyspace", **kwargs)
        self.nodes: dict[UUID, Comment] = {}
        self.tombstones: set[UUID] = set()
        self.failures: dict[str, Exception] = {}
        self._sequence: dict[UUID, int] = {}
        self._counter = itertools.count()

    async def _step(self, name: str) -> None:
        await asyncio.sleep(0)
        if name in self.failures:
            raise self.failures[name]

    def _order_key(self, node: Comment) -> tuple:
        return (node.created_at, self._sequence[node.comment_id])

    async def get(self, comment_id: UUID) -> Comment | None:
        await self._step("get")
        node = self.nodes.get(comment_id)
        return replace(node, children=list(node.children)) if node else None

    async def _write(self, comment: Comment) -> None:
        await self._step("_write")
        self.nodes[comment.comment_id] = replace(
            comment, children=list(comment.children)
        )
        self._sequence[comment.comment_id] = next(self._counter)

    async def _append_child(self, parent_id: UUID, child_id: UUID) -> None:
        await self._step("_append_child")
        if parent_id in self.nodes:
            self.nodes[parent_id].children.append(child_id)

    async def _pull_child(self, node: Comment) -> None:
        await self._step("_pull_child")
        parent = self.nodes.get(node.parent_id)
        if parent is not None:
            parent.children = [c for c in parent.children if c != node.comment_id]

    async def _drop(self, node: Comment) -> None:
        await self._step("_drop")
        self.nodes.pop(node.comment_id, None)
        self.tombstones.add(node.comment_id)

    async def was_removed(self, comment_id: UUID) -> bool:
        await self._step("was_removed")
        return comment_id in self.tombstones

    async def _top_level_ids(self, content_id: UUID, fetch: int | None) -> list[UUID]:
        await self._step("_top_level_ids")
        roots = [
            node
            for node in self.nodes.values()
            if node.content_id == content_id and not node.is_reply
        ]
        roots.sort(key=self._order_key, reverse=True)
        ids = [node.comment_id for node in roots]
        return ids if fetch is None else ids[:fetch]

    async def _child_ids(
        self, parent_id: UUID, fetch: int | None
    ) -> list[UUID]:
        await self._step("_child_ids")
        children = [node for node in self.nodes.values() if node.parent_id == parent_id]
        children.sort(key=self._order_key, reverse=True)
        ids = [node.comment_id for node in children]
        return ids if fetch is None else ids[:fetch]


# ==============================================================================
# In-memory notification fan-out
# ==============================================================================


class InMemoryNotificationFanout(NotificationFanout):
    def __init__(self):
        super().__init__(session=Mock(spec=Session), keyspace="test_keyspace")
        self.records: dict[UUID, Notification] = {}
        self.failures: dict[str, Exception] = {}
        self._sequence: dict[UUID, int] = {}
        self._counter = itertools.count()

    async def _step(self, name: str) -> None:
        await asyncio.sleep(0)
        if name in self.failures:
            raise self.failures[name]

    async def _insert(self, notification: Notification) -> None:
        await self._step("_insert")
        self.records[notification.notification_id] = replace(notification)
        self._sequence[notification.notification_id] = next(self._counter)

    async def _remove(self, notification: Notification) -> None:
        await self._step("_remove")
        self.records.pop(notification.notification_id, None)

    async def _anchored(self, anchor_id: UUID) -> list[Notification]:
        await self._step("_anchored")
        return [n for n in self.records.values() if anchor_id in n.anchors]

    async def _likes(self, actor_id: UUID, content_id: UUID) -> list[Notification]:
        await self._step("_likes")
        likes = [
            n
            for n in self.records.values()
            if n.type == NotificationType.LIKE
            and n.actor_id == actor_id
            and n.content_id == content_id
        ]
        likes.sort(key=lambda n: (n.created_at, self._sequence[n.notification_id]))
        return likes

    async def _unseen_actor_ids(self, recipient_id: UUID) -> list[UUID]:
        await self._step("_unseen_actor_ids")
        return [
            n.actor_id
            for n in self.records.values()
            if n.recipient_id == recipient_id and not n.seen
        ]

    def of_type(self, notification_type: NotificationType) -> list[Notification]:
        return [n for n in self.records.values() if n.type == notification_type]

    def mark_all_seen(self, recipient_id: UUID) -> None:
        for n in self.records.values():
            if n.recipient_id == recipient_id:
                n.seen = True


# ==============================================================================
# Fake registries
# ==============================================================================


class FakeContentRegistry:
    def __init__(self):
        self.owners: dict[UUID, UUID] = {}
        self.counters: dict[tuple[UUID, ContentCounter], int] = {}
        self.comment_refs: dict[UUID, list[UUID]] = {}
        self.failures: dict[str, Exception] = {}

    def _check(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def add(self, owner_id: UUID) -> UUID:
        content_id = uuid4()
        self.owners[content_id] = owner_id
        self.comment_refs[content_id] = []
        return content_id

    def counter(self, content_id: UUID, counter: ContentCounter) -> int:
        return self.counters.get((content_id, counter), 0)

    async def get_owner(self, content_id: UUID) -> UUID:
        self._check("get_owner")
        if content_id not in self.owners:
            raise NotFoundError(f"Content {content_id} not found")
        return self.owners[content_id]

    async def apply_counter_delta(
        self, content_id: UUID, counter: ContentCounter, delta: int
    ) -> None:
        self._check("apply_counter_delta")
        self._check(f"apply_counter_delta:{counter.value}")
        if delta == 0:
            return
        key = (content_id, counter)
        self.counters[key] = self.counters.get(key, 0) + delta

    async def append_comment_ref(self, content_id: UUID, comment_id: UUID) -> None:
        self._check("append_comment_ref")
        self.comment_refs.setdefault(content_id, []).append(comment_id)

    async def remove_comment_refs(
        self, content_id: UUID, comment_ids: list[UUID]
    ) -> None:
        self._check("remove_comment_refs")
        removed = set(comment_ids)
        self.comment_refs[content_id] = [
            c for c in self.comment_refs.get(content_id, []) if c not in removed
        ]

    async def get_activity(self, content_id: UUID) -> ContentActivity:
        return ContentActivity(
            content_id=content_id,
            total_comments=self.counter(content_id, ContentCounter.TOTAL_COMMENTS),
            total_parent_comments=self.counter(
                content_id, ContentCounter.TOTAL_PARENT_COMMENTS
            ),
            total_likes=self.counter(content_id, ContentCounter.TOTAL_LIKES),
            total_reads=self.counter(content_id, ContentCounter.TOTAL_READS),
        )


class FakeUserRegistry:
    def __init__(self):
        self.profiles: dict[UUID, UserProfile] = {}
        self.counters: dict[tuple[UUID, UserCounter], int] = {}
        self.failures: dict[str, Exception] = {}

    def add(self, username: str) -> UUID:
        profile = UserProfile(
            user_id=uuid4(),
            username=username,
            profile_img=f"https://api.dicebear.com/6.x/fun-emoji/svg?seed={username}",
        )
        self.profiles[profile.user_id] = profile
        return profile.user_id

    def counter(self, user_id: UUID, counter: UserCounter) -> int:
        return self.counters.get((user_id, counter), 0)

    async def exists(self, user_id: UUID) -> bool:
        return user_id in self.profiles

    async def get_profiles(self, user_ids: list[UUID]) -> dict[UUID, UserProfile]:
        return {uid: self.profiles[uid] for uid in user_ids if uid in self.profiles}

    async def apply_counter_delta(
        self, user_id: UUID, counter: UserCounter, delta: int
    ) -> None:
        if "apply_counter_delta" in self.failures:
            raise self.failures["apply_counter_delta"]
        key = (user_id, counter)
        self.counters[key] = self.counters.get(key, 0) + delta

    async def get_activity(self, user_id: UUID) -> UserActivity:
        return UserActivity(
            user_id=user_id,
            total_comments=self.counter(user_id, UserCounter.TOTAL_COMMENTS),
            total_reads=self.counter(user_id, UserCounter.TOTAL_READS),
        )


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def comment_store() -> InMemoryCommentStore:
    return InMemoryCommentStore()


@pytest.fixture
def fanout() -> InMemoryNotificationFanout:
    return InMemoryNotificationFanout()


@pytest.fixture
def contents() -> FakeContentRegistry:
    return FakeContentRegistry()


@pytest.fixture
def users() -> FakeUserRegistry:
    return FakeUserRegistry()


@pytest.fixture
def coordinator(comment_store, fanout, contents, users) -> EngagementCoordinator:
    return EngagementCoordinator(
        comments=comment_store,
        notifications=fanout,
        contents=contents,
        users=users,
    )


@pytest.fixture
def publisher_id(users: FakeUserRegistry) -> UUID:
    return users.add("publisher")


@pytest.fixture
def reader_id(users: FakeUserRegistry) -> UUID:
    return users.add("reader")


@pytest.fixture
def other_reader_id(users: FakeUserRegistry) -> UUID:
    return users.add("other_reader")


@pytest.fixture
def content_id(contents: FakeContentRegistry, publisher_id: UUID) -> UUID:
    return contents.add(publisher_id)


@pytest.fixture
def app(coordinator: EngagementCoordinator):
    """Application with the in-memory coordinator wired; lifespan is not run."""
    from novelhub.main import create_app  # noqa: PLC0415

    application = create_app()
    application.state.coordinator = coordinator
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Build Bearer headers for a user id."""

    def _headers(user_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
