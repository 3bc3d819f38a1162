import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from calendar_api.config import settings

class Database:
    client: Optional[AsyncIOMotorClient] = None

    async def connect(self):
        """Open the client and verify the server answers before serving requests."""
        self.client = AsyncIOMotorClient(
            settings.MONGO_URI,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS,
        )
        try:
            await self.client.admin.command("ping")
        except PyMongoError:
            self.close()
            raise
        logging.info(f"Connected to MongoDB at {settings.MONGO_URI}")
        await self.ensure_indexes()

    async def ensure_indexes(self):
        try:
            await self.get_event_collection().create_index("date")
        except PyMongoError as e:
            logging.warning(f"Error creating indexes: {e}")

    def close(self):
        if self.client:
            self.client.close()
            self.client = None
            logging.info("Disconnected from MongoDB")

    async def ping(self) -> bool:
        if self.client is None:
            raise RuntimeError("Database client is not connected")
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logging.warning(f"MongoDB ping failed: {e}")
            return False

    def get_db(self):
        if self.client is None:
            raise RuntimeError("Database client is not connected")
        return self.client[settings.MONGO_DB_NAME]

    def get_collection(self, name: str):
        return self.get_db()[name]

    def get_event_collection(self):
        return self.get_collection(settings.MONGO_COLL_NAME)

db = Database()
