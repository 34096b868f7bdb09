"""Pydantic schemas for the engagement API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from novelhub.registry.models import ContentActivity, UserActivity, UserProfile

from .models import CommentView, DeleteCommentResult, RecordReadResult


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Comment on a content item, or reply when ``replying_to`` is set.

    Text is validated by the service so empty comments get the same error
    shape as every other engagement failure.
    """

    content_id: UUID
    text: str
    replying_to: UUID | None = None


class ToggleLikeRequest(BaseModel):
    currently_liked: bool = Field(
        ..., description="Whether the user liked the content before this call"
    )


# ==============================================================================
# Response Schemas
# ==============================================================================


class AuthorResponse(BaseModel):
    user_id: UUID
    username: str
    profile_img: str | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "AuthorResponse":
        return cls(
            user_id=profile.user_id,
            username=profile.username,
            profile_img=profile.profile_img,
        )


class CommentResponse(BaseModel):
    """Comment node as returned to clients."""

    comment_id: UUID
    content_id: UUID
    author_id: UUID
    text: str
    is_reply: bool
    parent_id: UUID | None = None
    children: list[UUID] = Field(default_factory=list)
    created_at: datetime
    author: AuthorResponse | None = None

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentResponse":
        comment = view.comment
        return cls(
            comment_id=comment.comment_id,
            content_id=comment.content_id,
            author_id=comment.author_id,
            text=comment.text,
            is_reply=comment.is_reply,
            parent_id=comment.parent_id,
            children=comment.children,
            created_at=comment.created_at,
            author=AuthorResponse.from_profile(view.author) if view.author else None,
        )


class CreateCommentResponse(CommentResponse):
    warnings: list[str] = Field(default_factory=list)


class CommentListResponse(BaseModel):
    items: list[CommentResponse]
    skip: int
    limit: int


class DeleteCommentResponse(BaseModel):
    removed_count: int
    removed_top_level_count: int
    removed_ids: list[UUID] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DeleteCommentResult) -> "DeleteCommentResponse":
        return cls(
            removed_count=result.removed_count,
            removed_top_level_count=result.removed_top_level_count,
            removed_ids=result.removed_ids,
            warnings=result.warnings,
        )


class ToggleLikeResponse(BaseModel):
    now_liked: bool
    warnings: list[str] = Field(default_factory=list)


class LikeStatusResponse(BaseModel):
    liked_by_user: bool


class RecordReadResponse(BaseModel):
    content_id: UUID
    publisher_id: UUID
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RecordReadResult) -> "RecordReadResponse":
        return cls(
            content_id=result.content_id,
            publisher_id=result.publisher_id,
            warnings=result.warnings,
        )


class ContentActivityResponse(BaseModel):
    content_id: UUID
    total_comments: int
    total_parent_comments: int
    total_likes: int
    total_reads: int

    @classmethod
    def from_activity(cls, activity: ContentActivity) -> "ContentActivityResponse":
        return cls(
            content_id=activity.content_id,
            total_comments=activity.total_comments,
            total_parent_comments=activity.total_parent_comments,
            total_likes=activity.total_likes,
            total_reads=activity.total_reads,
        )


class UserActivityResponse(BaseModel):
    user_id: UUID
    total_comments: int
    total_reads: int

    @classmethod
    def from_activity(cls, activity: UserActivity) -> "UserActivityResponse":
        return cls(
            user_id=activity.user_id,
            total_comments=activity.total_comments,
            total_reads=activity.total_reads,
        )
