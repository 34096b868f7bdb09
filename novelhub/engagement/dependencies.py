"""FastAPI dependencies for the engagement API."""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status

from novelhub.config import get_settings
from novelhub.core.errors import EngagementError

from .coordinator import EngagementCoordinator


async def get_coordinator(request: Request) -> EngagementCoordinator:
    """Get the engagement coordinator from app state.

    Raises:
        HTTPException(503): Storage was not initialized at startup.
    """
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Engagement service not available",
        )
    return coordinator


CoordinatorDep = Annotated[EngagementCoordinator, Depends(get_coordinator)]


class PageParams:
    """``skip``/``limit`` query parameters with configured defaults."""

    def __init__(
        self,
        skip: Annotated[int, Query(ge=0)] = 0,
        limit: Annotated[int | None, Query(ge=1)] = None,
    ):
        settings = get_settings()
        self.skip = skip
        self.limit = min(
            limit or settings.comments_page_size, settings.comments_max_page_size
        )


PageDep = Annotated[PageParams, Depends()]


def handle_engagement_error(error: EngagementError) -> HTTPException:
    """Convert engagement errors to HTTP exceptions."""
    status_map = {
        "invalid_argument": status.HTTP_400_BAD_REQUEST,
        "forbidden": status.HTTP_403_FORBIDDEN,
        "not_found": status.HTTP_404_NOT_FOUND,
        "conflict": status.HTTP_409_CONFLICT,
        "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(status_code=status_code, detail=error.message)
