"""Notification API endpoints."""

from fastapi import APIRouter

from novelhub.auth.dependencies import CurrentUser
from novelhub.core.errors import EngagementError
from novelhub.engagement.dependencies import CoordinatorDep, handle_engagement_error

from .schemas import UnseenNotificationsResponse


router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get(
    "/unseen",
    response_model=UnseenNotificationsResponse,
    summary="Check for unseen notifications",
)
async def unseen_notifications(
    coordinator: CoordinatorDep,
    user: CurrentUser,
) -> UnseenNotificationsResponse:
    """Notifications caused by the user's own actions never count."""
    try:
        available = await coordinator.has_unseen_notifications(user.id)
    except EngagementError as e:
        raise handle_engagement_error(e) from e

    return UnseenNotificationsResponse(new_notification_available=available)
