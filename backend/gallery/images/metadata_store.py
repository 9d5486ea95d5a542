"""MongoDB metadata store for uploaded images.

Wraps an async PyMongo collection.  The client itself is owned by the
application lifespan (see ``gallery.main``); this class only borrows the
collection handle.
"""
import logging
from typing import List, Optional

from bson import ObjectId

from .schemas import UploadedFile

logger = logging.getLogger(__name__)


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return *value* as an ObjectId, or None if it is not one."""
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class MetadataStore:
    """One document per uploaded image."""

    def __init__(self, collection) -> None:
        self._collection = collection

    async def insert_many(self, records: List[UploadedFile]) -> List[str]:
        """Insert *records* in one batch and return the assigned ids.

        The caller compares the number of ids with ``len(records)`` to detect
        a partial insert.
        """
        if not records:
            return []
        result = await self._collection.insert_many([r.to_document() for r in records])
        inserted = [str(_id) for _id in result.inserted_ids]
        logger.info("MongoDB insert result: %d of %d documents", len(inserted), len(records))
        return inserted

    async def get(self, file_id: str) -> Optional[UploadedFile]:
        """Look up a record by id; unknown or malformed ids return None."""
        oid = parse_object_id(file_id)
        if oid is None:
            logger.warning("Rejected malformed file id: %r", file_id)
            return None
        doc = await self._collection.find_one({"_id": oid})
        if doc is None:
            return None
        return UploadedFile.from_document(doc)

    async def delete(self, file_id: str) -> bool:
        oid = parse_object_id(file_id)
        if oid is None:
            return False
        result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count > 0
