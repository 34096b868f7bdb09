"""Async Cassandra access through cassandra-asyncio-driver.

The session returned here exposes ``aexecute()`` which every service in
NovelHub awaits. Connecting is synchronous; schema creation is async.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from novelhub.comments.models import COMMENTS_TABLES_CQL
from novelhub.config.settings import get_settings
from novelhub.notifications.models import NOTIFICATIONS_TABLES_CQL
from novelhub.registry.models import REGISTRY_TABLES_CQL


logger = structlog.get_logger(__name__)

SCHEMA_GROUPS: dict[str, list[str]] = {
    "registry": REGISTRY_TABLES_CQL,
    "comments": COMMENTS_TABLES_CQL,
    "notifications": NOTIFICATIONS_TABLES_CQL,
}


class CassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        """Connect to the cluster, reusing the session when already open.

        Raises:
            ConnectionError: If no contact point answers.
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
        logger.info("cassandra_disconnected")


async def create_keyspace(session, keyspace: str) -> None:
    """Create the keyspace if missing.

    Production uses NetworkTopologyStrategy with three replicas; every other
    environment uses a single SimpleStrategy replica.
    """
    settings = get_settings()

    if settings.is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )
    logger.info("keyspace_created", keyspace=keyspace)


async def create_tables(session, keyspace: str) -> None:
    """Create every table group used by NovelHub."""
    for group, statements in SCHEMA_GROUPS.items():
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("tables_created", group=group, keyspace=keyspace)


async def init_cassandra():
    """Connect, then create keyspace and tables.

    Returns:
        Session with ``aexecute()`` support, bound to the configured keyspace.
    """
    settings = get_settings()
    session = CassandraConnection.connect()

    await create_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await create_tables(session, settings.cassandra_keyspace)

    logger.info("cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


def shutdown_cassandra() -> None:
    CassandraConnection.disconnect()
