"""Recount live comments and repair the comment counters of content items.

Usage:
    python -m scripts.reconcile_counters <content_id> [<content_id> ...]
"""

import argparse
import asyncio
from pathlib import Path
from uuid import UUID

from novelhub.config.settings import get_settings
from novelhub.core.database import CassandraConnection
from novelhub.core.errors import EngagementError
from novelhub.core.logging import configure_structlog, get_logger
from novelhub.engagement.coordinator import build_coordinator


logger = get_logger(__name__)


async def reconcile(content_ids: list[UUID]) -> int:
    """Reconcile each content item; returns the number that failed."""
    settings = get_settings()
    session = CassandraConnection.connect()
    session.set_keyspace(settings.cassandra_keyspace)
    coordinator = build_coordinator(session, settings)

    failed = 0
    try:
        for content_id in content_ids:
            try:
                result = await coordinator.reconcile_counters(content_id)
            except EngagementError as e:
                logger.error(
                    "reconcile_failed",
                    content_id=str(content_id),
                    code=e.code,
                    error=e.message,
                )
                failed += 1
                continue
            logger.info(
                "reconcile_done",
                content_id=str(content_id),
                total_comments_delta=result.total_comments_delta,
                total_parent_comments_delta=result.total_parent_comments_delta,
            )
    finally:
        CassandraConnection.disconnect()

    return failed


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("content_ids", nargs="+", type=UUID)
    args = parser.parse_args()

    settings = get_settings()
    configure_structlog(settings, log_dir=Path(settings.log_dir))

    failed = asyncio.run(reconcile(args.content_ids))
    raise SystemExit(1 if failed else 0)


if __name__ == "__main__":
    main()
