"""Engagement API endpoints.

Routes for:
- Comments and replies (create, list, cascading delete)
- Likes (toggle, status)
- Content reads and activity counters
- User activity counters
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status

from novelhub.auth.dependencies import CurrentUser
from novelhub.core.errors import EngagementError

from .dependencies import CoordinatorDep, PageDep, handle_engagement_error
from .models import CommentView
from .schemas import (
    CommentListResponse,
    CommentResponse,
    ContentActivityResponse,
    CreateCommentRequest,
    CreateCommentResponse,
    DeleteCommentResponse,
    LikeStatusResponse,
    RecordReadResponse,
    ToggleLikeRequest,
    ToggleLikeResponse,
    UserActivityResponse,
)


logger = structlog.get_logger(__name__)


comments_router = APIRouter(prefix="/v1/comments", tags=["comments"])
likes_router = APIRouter(prefix="/v1/likes", tags=["likes"])
contents_router = APIRouter(prefix="/v1/contents", tags=["contents"])
users_router = APIRouter(prefix="/v1/users", tags=["users"])


# ==============================================================================
# Comments
# ==============================================================================


@comments_router.post(
    "",
    response_model=CreateCommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on content or reply to a comment",
)
async def create_comment(
    data: CreateCommentRequest,
    coordinator: CoordinatorDep,
    user: CurrentUser,
) -> CreateCommentResponse:
    """Create a comment; a reply when ``replying_to`` is given.

    Counter, comment-ref and notification failures do not fail the request;
    they are listed in ``warnings``.
    """
    try:
        result = await coordinator.add_comment(
            content_id=data.content_id,
            author_id=user.id,
            text=data.text,
            replying_to=data.replying_to,
        )
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    response = CommentResponse.from_view(CommentView(comment=result.comment))
    return CreateCommentResponse(**response.model_dump(), warnings=result.warnings)


@comments_router.get(
    "/content/{content_id}",
    response_model=CommentListResponse,
    summary="List top-level comments of a content item",
)
async def list_content_comments(
    content_id: UUID,
    coordinator: CoordinatorDep,
    page: PageDep,
) -> CommentListResponse:
    """Newest first, replies excluded."""
    try:
        views = await coordinator.list_top_level_comments(
            content_id, skip=page.skip, limit=page.limit
        )
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return CommentListResponse(
        items=[CommentResponse.from_view(view) for view in views],
        skip=page.skip,
        limit=page.limit,
    )


@comments_router.get(
    "/{comment_id}/replies",
    response_model=CommentListResponse,
    summary="List direct replies of a comment",
)
async def list_comment_replies(
    comment_id: UUID,
    coordinator: CoordinatorDep,
    page: PageDep,
) -> CommentListResponse:
    try:
        views = await coordinator.list_replies(
            comment_id, skip=page.skip, limit=page.limit
        )
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return CommentListResponse(
        items=[CommentResponse.from_view(view) for view in views],
        skip=page.skip,
        limit=page.limit,
    )


@comments_router.delete(
    "/{comment_id}",
    response_model=DeleteCommentResponse,
    summary="Delete a comment and its replies",
)
async def delete_comment(
    comment_id: UUID,
    coordinator: CoordinatorDep,
    user: CurrentUser,
) -> DeleteCommentResponse:
    """Allowed for the comment's author and the content's owner."""
    try:
        result = await coordinator.delete_comment(user.id, comment_id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return DeleteCommentResponse.from_result(result)


# ==============================================================================
# Likes
# ==============================================================================


@likes_router.post(
    "/{content_id}",
    response_model=ToggleLikeResponse,
    summary="Like or unlike a content item",
)
async def toggle_like(
    content_id: UUID,
    data: ToggleLikeRequest,
    coordinator: CoordinatorDep,
    user: CurrentUser,
) -> ToggleLikeResponse:
    try:
        result = await coordinator.toggle_like(
            user.id, content_id, data.currently_liked
        )
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return ToggleLikeResponse(now_liked=result.now_liked, warnings=result.warnings)


@likes_router.get(
    "/{content_id}/status",
    response_model=LikeStatusResponse,
    summary="Whether the current user likes a content item",
)
async def like_status(
    content_id: UUID,
    coordinator: CoordinatorDep,
    user: CurrentUser,
) -> LikeStatusResponse:
    try:
        liked = await coordinator.is_liked_by_user(user.id, content_id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return LikeStatusResponse(liked_by_user=liked)


# ==============================================================================
# Contents
# ==============================================================================


@contents_router.post(
    "/{content_id}/reads",
    response_model=RecordReadResponse,
    summary="Count a read of a content item",
)
async def record_read(
    content_id: UUID,
    coordinator: CoordinatorDep,
) -> RecordReadResponse:
    try:
        result = await coordinator.record_read(content_id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return RecordReadResponse.from_result(result)


@contents_router.get(
    "/{content_id}/activity",
    response_model=ContentActivityResponse,
    summary="Activity counters of a content item",
)
async def content_activity(
    content_id: UUID,
    coordinator: CoordinatorDep,
) -> ContentActivityResponse:
    try:
        activity = await coordinator.get_content_activity(content_id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return ContentActivityResponse.from_activity(activity)


# ==============================================================================
# Users
# ==============================================================================


@users_router.get(
    "/{user_id}/activity",
    response_model=UserActivityResponse,
    summary="Comment and read counters of a user",
)
async def user_activity(
    user_id: UUID,
    coordinator: CoordinatorDep,
) -> UserActivityResponse:
    try:
        activity = await coordinator.get_user_activity(user_id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return UserActivityResponse.from_activity(activity)
