"""MongoDB connection management with background reconnection."""
import asyncio
import enum
import logging
from typing import Any, Callable, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING

from config import Settings

logger = logging.getLogger(__name__)

EXPENSES_COLLECTION = "expenses"
CONSULTANTS_COLLECTION = "consultants"


class ConnectionStatus(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Delay before retry number `attempt` (1-based): initial * 2**(attempt-1), capped at maximum."""
    if attempt < 1:
        return 0.0
    return min(initial * (2 ** (attempt - 1)), maximum)


def redact_host(uri: str) -> str:
    """Host portion of a MongoDB URI without scheme, credentials, path or options."""
    without_scheme = uri.split("://", 1)[-1]
    host_part = without_scheme.split("/", 1)[0].split("?", 1)[0]
    return host_part.rsplit("@", 1)[-1]


class ConnectionManager:
    """
    Owns the Motor client and tracks whether the database is reachable.
    Request handlers ask it for collections; while it is not connected they
    get a ConnectionError instead of waiting for a reconnect.
    """

    def __init__(self, settings: Settings, client_factory: Optional[Callable[..., Any]] = None):
        self.settings = settings
        self._client_factory = client_factory or AsyncIOMotorClient
        self._client = None
        self._status = ConnectionStatus.DISCONNECTED
        self._task: Optional[asyncio.Task] = None
        self.attempts = 0
        self._sleep = asyncio.sleep

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory(
                self.settings.mongodb_uri,
                serverSelectionTimeoutMS=self.settings.server_selection_timeout_ms,
            )
        return self._client

    @property
    def db(self):
        return self.client[self.settings.db_name]

    def collection(self, name: str) -> AsyncIOMotorCollection:
        if not self.is_connected:
            raise ConnectionError("Database service not available.")
        return self.db.get_collection(name)

    def describe(self) -> Dict[str, str]:
        return {
            "status": self._status.value,
            "host": redact_host(self.settings.mongodb_uri),
            "name": self.settings.db_name,
        }

    def _set_status(self, status: ConnectionStatus) -> None:
        if status != self._status:
            logger.info(f"Database connection state: {self._status.value} -> {status.value}")
        self._status = status

    async def ping(self) -> None:
        await self.client.admin.command("ping")

    async def ensure_indexes(self) -> None:
        db = self.db
        await db[CONSULTANTS_COLLECTION].create_index([("name", ASCENDING)], unique=True)
        await db[EXPENSES_COLLECTION].create_index([("date", ASCENDING)])
        await db[EXPENSES_COLLECTION].create_index([("category", ASCENDING), ("consultantName", ASCENDING)])

    async def connect_with_retry(self, max_attempts: Optional[int] = None) -> bool:
        """
        Pings the server until it answers, sleeping with capped exponential backoff between attempts.
        Returns False only when max_attempts is given and exhausted.
        """
        self._set_status(ConnectionStatus.CONNECTING)
        self.attempts = 0
        while True:
            if self.attempts:
                delay = backoff_delay(self.attempts, self.settings.retry_initial_delay, self.settings.retry_max_delay)
                logger.warning(f"Retrying MongoDB connection in {delay:.1f}s (attempt {self.attempts + 1})")
                await self._sleep(delay)
            self.attempts += 1
            try:
                await self.ping()
            except Exception as e:
                logger.error(f"Failed to connect to MongoDB at {redact_host(self.settings.mongodb_uri)}: {e}")
                if max_attempts is not None and self.attempts >= max_attempts:
                    self._set_status(ConnectionStatus.DISCONNECTED)
                    return False
                continue
            self._set_status(ConnectionStatus.CONNECTED)
            logger.info(f"Connected to MongoDB database: {self.settings.db_name}")
            try:
                await self.ensure_indexes()
            except Exception:
                logger.exception(f"Failed to create indexes on MongoDB database: {self.settings.db_name}")
            return True

    async def _monitor(self) -> None:
        if not self.is_connected:
            await self.connect_with_retry()
        interval = self.settings.health_check_interval
        if interval <= 0:
            return
        while True:
            await self._sleep(interval)
            try:
                await self.ping()
            except Exception as e:
                logger.error(f"MongoDB ping failed, connection lost: {e}")
                self._set_status(ConnectionStatus.DISCONNECTED)
                await self.connect_with_retry()

    async def start(self) -> None:
        """First attempt happens inline; retries and liveness checks continue in the background."""
        logger.info(f"Connecting to MongoDB at {redact_host(self.settings.mongodb_uri)}...")
        await self.connect_with_retry(max_attempts=1)
        self._task = asyncio.create_task(self._monitor())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._client is not None:
            logger.info("Closing MongoDB connection...")
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed.")
        self._set_status(ConnectionStatus.DISCONNECTED)
