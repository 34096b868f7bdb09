"""Threaded comments: the per-content comment forest and its storage."""

from .models import (
    COMMENTS_TABLES_CQL,
    Comment,
    RemovedComment,
    SubtreeRemoval,
)
from .store import CommentStore, SubtreeRemovalInterrupted


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentStore",
    "RemovedComment",
    "SubtreeRemoval",
    "SubtreeRemovalInterrupted",
]
