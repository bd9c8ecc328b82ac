"""MongoDB connection and index bootstrap."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from blogsphere.config import MONGODB_URL, DATABASE_NAME

logger = logging.getLogger(__name__)


client = AsyncIOMotorClient(MONGODB_URL)
db = client[DATABASE_NAME]


def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the application database."""
    return db


async def ensure_indexes(database: AsyncIOMotorDatabase):
    """Create unique keys and the indexes the feed/profile queries rely on."""
    # Unique constraints
    await database.users.create_index("user_id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.posts.create_index("post_id", unique=True)
    await database.comments.create_index("comment_id", unique=True)

    # Feed, profile and lookup queries
    await database.posts.create_index([("created_at", DESCENDING)])
    await database.posts.create_index([("author", ASCENDING)])
    await database.posts.create_index([("bookmarks", ASCENDING)])
    await database.posts.create_index([("tagged", ASCENDING)])
    await database.posts.create_index([("tags", ASCENDING)])
    await database.comments.create_index([("post", ASCENDING)])
    logger.info("MongoDB indexes ensured on %s", database.name)
