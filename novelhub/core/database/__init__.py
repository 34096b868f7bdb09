"""Cassandra connection and schema bootstrap for NovelHub."""

from novelhub.core.database.async_cassandra import (
    CassandraConnection,
    init_cassandra,
    shutdown_cassandra,
)


__all__ = [
    "CassandraConnection",
    "init_cassandra",
    "shutdown_cassandra",
]
