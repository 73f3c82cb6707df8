"""
core/db.py -- MongoDB client handle shared by the whole process.

One MongoClient per process: pymongo pools connections internally, so every
request reuses the same client. The client is created lazily on first use and
has explicit lifecycle hooks -- connect() at application startup (pings the
server so a bad MONGODB_URI fails fast) and close() at shutdown.

The database name comes from the path component of MONGODB_URI
(mongodb://localhost:27017/better-demo -> "better-demo").

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import lru_cache

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from core.config import get_settings

logger = logging.getLogger("betterdemo.db")

_FALLBACK_DB_NAME = "better-demo"


class MongoDatabase:
    """Lazily-initialized MongoClient wrapper with startup/shutdown hooks.

    Usage:
        db = MongoDatabase("mongodb://localhost:27017/better-demo")
        db.connect()          # startup: ping, log, raise on failure
        users = db.database["user"]
        db.close()            # shutdown

    client_factory exists so tests can substitute mongomock.MongoClient.
    """

    def __init__(
        self,
        uri: str,
        timeout_ms: int = 5000,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ) -> None:
        self.uri = uri
        self.timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._client: MongoClient | None = None

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            # MongoClient does not block here; the first operation connects.
            self._client = self._client_factory(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
        return self._client

    @property
    def database(self) -> Database:
        return self.client.get_default_database(_FALLBACK_DB_NAME)

    def connect(self) -> MongoClient:
        """Open the connection and verify the server answers a ping.

        Raises the driver's PyMongoError after logging if the server is
        unreachable. Callers (the lifespan) let it propagate so the app
        refuses to start against a dead database.
        """
        try:
            self.client.admin.command("ping")
        except PyMongoError:
            logger.exception("Failed to connect to MongoDB")
            raise
        logger.info("Connected to MongoDB")
        return self.client

    def ping(self) -> bool:
        """Return True if the server answers a ping. Used by the health check."""
        try:
            self.client.admin.command("ping")
        except PyMongoError:
            logger.warning("MongoDB ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


@lru_cache
def get_database() -> MongoDatabase:
    """Return the process-wide MongoDatabase handle (created on first call)."""
    cfg = get_settings()
    return MongoDatabase(cfg.mongodb_uri, timeout_ms=cfg.mongodb_timeout_ms)
