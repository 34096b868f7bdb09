"""Content and user registries consumed by the engagement core."""

from .models import (
    REGISTRY_TABLES_CQL,
    ContentActivity,
    ContentCounter,
    UserActivity,
    UserCounter,
    UserProfile,
)
from .service import ContentRegistry, UserRegistry


__all__ = [
    "REGISTRY_TABLES_CQL",
    "ContentActivity",
    "ContentCounter",
    "ContentRegistry",
    "UserActivity",
    "UserCounter",
    "UserProfile",
    "UserRegistry",
]
