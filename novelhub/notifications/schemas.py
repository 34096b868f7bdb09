"""Pydantic schemas for notification endpoints."""

from pydantic import BaseModel


class UnseenNotificationsResponse(BaseModel):
    """Badge state: something new from another user is waiting."""

    new_notification_available: bool
