from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, ReturnDocument

from talentbridge.config import MONGO_URI, DATABASE_NAME
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)

if not MONGO_URI:
    logger.warning("MONGO_URI is not set, check your .env file")
elif "localhost" in MONGO_URI or "127.0.0.1" in MONGO_URI:
    logger.info("Will connect to LOCAL MongoDB")
elif "mongodb+srv" in MONGO_URI:
    logger.info("Will connect to MongoDB Atlas")

client = None
db = None


async def connect_to_mongo():
    global client, db

    if not MONGO_URI:
        raise ValueError("MONGO_URI environment variable is not set! Check your .env file.")

    client = AsyncIOMotorClient(MONGO_URI)
    db = client[DATABASE_NAME]
    await client.admin.command('ping')
    await ensure_indexes(db)

    logger.info("Connected to MongoDB database %s", DATABASE_NAME)


async def close_mongo_connection():
    if client:
        client.close()


async def ensure_indexes(database):
    """Indexes the lifecycle and pricing rules rely on."""
    await database.applications.create_index(
        [("job_id", ASCENDING), ("candidate_email", ASCENDING)],
        unique=True,
        name="job_candidate_unique",
    )
    await database.job_assignments.create_index("job_id", unique=True)
    await database.pricing_rules.create_index(
        [
            ("profile", ASCENDING),
            ("seniority", ASCENDING),
            ("work_mode", ASCENDING),
            ("is_active", ASCENDING),
            ("id", ASCENDING),
        ]
    )
    await database.notifications.create_index([("user_id", ASCENDING), ("read", ASCENDING)])


async def next_sequence(database, name: str) -> int:
    """Allocate the next integer id for `name` (monotonic, insertion ordered)."""
    counter = await database.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["value"]


def get_db():
    return db
