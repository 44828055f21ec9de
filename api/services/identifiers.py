"""Business key generation for stored entities."""

from __future__ import annotations

import os
import secrets
import string
import time

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

logger = structlog.get_logger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
SUFFIX_LENGTH = 9
MAX_ATTEMPTS = int(os.getenv("BUSINESS_ID_ATTEMPTS", "3"))


def generate_business_id(prefix: str) -> str:
    """
    Build a business key such as ``NOTE_1718000000000_k3j9x0a1b``.

    Args:
        prefix: Entity type prefix (``USER``, ``NOTE``, ...)

    Returns:
        Prefix, epoch milliseconds and a random base36 suffix joined by ``_``
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}_{millis}_{suffix}"


def _collided_on(error: DuplicateKeyError, key_field: str) -> bool:
    key_pattern = (error.details or {}).get("keyPattern") or {}
    return key_field in key_pattern


async def insert_with_business_id(
    collection: AsyncIOMotorCollection,
    document: dict,
    key_field: str,
    prefix: str,
    attempts: int = MAX_ATTEMPTS,
):
    """
    Insert a document under a freshly generated business key.

    The store's unique index is the arbiter: a duplicate on ``key_field``
    regenerates the key and retries, up to ``attempts`` inserts. Duplicates
    on any other unique field are re-raised immediately.

    Returns:
        The storage identity of the inserted document
    """
    for attempt in range(1, attempts + 1):
        document[key_field] = generate_business_id(prefix)
        try:
            result = await collection.insert_one(document)
            return result.inserted_id
        except DuplicateKeyError as e:
            if not _collided_on(e, key_field) or attempt == attempts:
                raise
            logger.warning(
                "business_id_collision",
                collection=collection.name,
                key_field=key_field,
                attempt=attempt,
            )
            # insert_one stamps an _id on the document before sending it
            document.pop("_id", None)
