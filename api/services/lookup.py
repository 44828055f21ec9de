"""Identity parsing and reference resolution for request handlers."""

from __future__ import annotations

from collections.abc import Iterable

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection

from ..errors import NotFoundError, ValidationError


def parse_object_id(value: str, label: str) -> ObjectId:
    """
    Parse a storage identity sent by a client.

    Raises:
        ValidationError: if the value is not a valid ObjectId
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(
            f"Invalid {label.lower()} ID format", error=f"{label} id {value!r} is malformed"
        )


def parse_object_ids(values: Iterable[str], label: str) -> list[ObjectId]:
    """Parse a list of identities, dropping duplicates but keeping order."""
    parsed = []
    for value in values:
        object_id = parse_object_id(value, label)
        if object_id not in parsed:
            parsed.append(object_id)
    return parsed


async def get_or_404(
    collection: AsyncIOMotorCollection,
    object_id: ObjectId,
    label: str,
    projection: dict | None = None,
) -> dict:
    """Fetch a document by identity or raise NotFoundError."""
    doc = await collection.find_one({"_id": object_id}, projection)
    if doc is None:
        raise NotFoundError(f"{label} not found", error=f"{label} {object_id} does not exist")
    return doc


async def require_existing(
    collection: AsyncIOMotorCollection, values: Iterable[str], label: str
) -> list[ObjectId]:
    """
    Parse identities and check every one resolves.

    Returns:
        The parsed identities in request order

    Raises:
        ValidationError: on a malformed identity
        NotFoundError: naming the identities that do not resolve
    """
    object_ids = parse_object_ids(values, label)
    if not object_ids:
        return []

    found = set(await collection.distinct("_id", {"_id": {"$in": object_ids}}))
    missing = [str(object_id) for object_id in object_ids if object_id not in found]
    if missing:
        raise NotFoundError(
            f"{label} not found", error=f"unknown {label.lower()} ids: {', '.join(missing)}"
        )
    return object_ids
