import logging
import os
from urllib.parse import urlparse

from dotenv import load_dotenv
from mongoengine import connect

load_dotenv()

logger = logging.getLogger(__name__)


def init_db(mongo_uri: str | None = None, **connect_kwargs):
    mongo_uri = mongo_uri or os.getenv("MONGODB_URI", "mongodb://localhost:27017/fruitpanda")

    # Auto-detect DB name from URI
    parsed = urlparse(mongo_uri)
    db_name = (parsed.path or "").lstrip("/") or "fruitpanda"

    try:
        connection = connect(
            db=db_name,
            host=mongo_uri,
            alias="default",
            **connect_kwargs
        )
        logger.info(f"✅ MongoDB connected successfully → {db_name}")
        return connection
    except Exception as e:
        logger.error(f"❌ MongoDB connection error: {e}")
        raise
