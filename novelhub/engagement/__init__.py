"""Engagement orchestration: comments, likes, reads and their counters.

Note: the router is not exported here to avoid circular imports.
"""

from .coordinator import EngagementCoordinator


__all__ = ["EngagementCoordinator"]
