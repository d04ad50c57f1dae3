from motor.motor_asyncio import AsyncIOMotorClient
from logging_config import get_logger
from config import config
import certifi

logger = get_logger("database")

COLLECTIONS = ("users", "projects", "teams", "features", "functions", "tasks", "notifications")


def _connect() -> AsyncIOMotorClient:
    uri = config.MONGO_URI
    if not uri:
        logger.error("MONGO_URI not found in configuration!")
    else:
        logger.info(f"Connecting to MongoDB: {uri[:20]}...")

    if config.ENV == "production":
        return AsyncIOMotorClient(uri, tlsCAFile=certifi.where())
    return AsyncIOMotorClient(uri, tlsAllowInvalidCertificates=True)


class DatabaseProxy:
    """Creates the Motor client on first use so importing this module never opens sockets."""

    def __init__(self):
        self._client = None

    def initialize(self):
        if self._client is None:
            self._client = _connect()
            logger.info(f"Database client initialized on DB: {config.DB_NAME}")

    def use(self, motor_client):
        """Install an already constructed client (tests use an in-memory one)."""
        self._client = motor_client

    def reset(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    async def ping(self) -> bool:
        try:
            await self[config.DB_NAME].command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def __getattr__(self, name):
        self.initialize()
        return getattr(self._client, name)

    def __getitem__(self, name):
        self.initialize()
        return self._client[name]


client = DatabaseProxy()


class DBProxy:
    """The application database; DB_NAME is read on every access."""

    def get_collection(self, name):
        return client[config.DB_NAME][name]

    def __getattr__(self, attr):
        return self.get_collection(attr)

    def __getitem__(self, key):
        return self.get_collection(key)


db = DBProxy()


class AsyncCollectionProxy:
    def __init__(self, name):
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name}")
        self.name = name

    def __getattr__(self, attr):
        return getattr(db.get_collection(self.name), attr)

    def __getitem__(self, key):
        return db.get_collection(self.name)[key]


users_collection = AsyncCollectionProxy("users")
projects_collection = AsyncCollectionProxy("projects")
teams_collection = AsyncCollectionProxy("teams")
features_collection = AsyncCollectionProxy("features")
functions_collection = AsyncCollectionProxy("functions")
tasks_collection = AsyncCollectionProxy("tasks")
notifications_collection = AsyncCollectionProxy("notifications")
