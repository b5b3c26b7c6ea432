"""Service layer for consultant records."""
import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from models.consultant import Consultant, ConsultantCreate, ConsultantUpdate
from services import expenses_service
from services.errors import DuplicateConsultantError, RecordNotFoundError, to_object_id
from utils.dates import utcnow

logger = logging.getLogger(__name__)


def _duplicate(name: str) -> DuplicateConsultantError:
    return DuplicateConsultantError(f"A consultant named '{name}' already exists.")


async def get_consultants(collection: AsyncIOMotorCollection, active: Optional[bool] = None) -> List[Consultant]:
    """All consultants sorted by name, optionally filtered on the active flag."""
    query: Dict[str, Any] = {} if active is None else {"active": active}
    try:
        cursor = collection.find(query).sort("name", ASCENDING)
        return [Consultant.from_document(doc) async for doc in cursor]
    except PyMongoError as e:
        logger.error(f"Database error fetching consultants: {e}")
        raise ConnectionError(f"Database error fetching consultants: {e}") from e


async def find_by_name(
    collection: AsyncIOMotorCollection, name: str, exclude_id: Optional[ObjectId] = None
) -> Optional[Dict[str, Any]]:
    query: Dict[str, Any] = {"name": name}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    try:
        return await collection.find_one(query)
    except PyMongoError as e:
        logger.error(f"Database error looking up consultant '{name}': {e}")
        raise ConnectionError(f"Database error looking up consultant: {e}") from e


async def create_consultant(collection: AsyncIOMotorCollection, payload: ConsultantCreate) -> Consultant:
    if await find_by_name(collection, payload.name):
        logger.warning(f"Rejected duplicate consultant name '{payload.name}'")
        raise _duplicate(payload.name)

    now = utcnow()
    document: Dict[str, Any] = {"name": payload.name, "active": True, "createdAt": now, "updatedAt": now}
    if payload.specialization:
        document["specialization"] = payload.specialization
    try:
        result = await collection.insert_one(document)
    except DuplicateKeyError as e:
        # Concurrent insert of the same name
        raise _duplicate(payload.name) from e
    except PyMongoError as e:
        logger.error(f"Database error inserting consultant: {e}")
        raise ConnectionError(f"Database error inserting consultant: {e}") from e
    document["_id"] = result.inserted_id
    logger.info(f"Created consultant '{payload.name}' ({result.inserted_id})")
    return Consultant.from_document(document)


async def _find_consultant(collection: AsyncIOMotorCollection, object_id: ObjectId, consultant_id: str) -> Dict[str, Any]:
    try:
        doc = await collection.find_one({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error fetching consultant {consultant_id}: {e}")
        raise ConnectionError(f"Database error fetching consultant: {e}") from e
    if doc is None:
        raise RecordNotFoundError(f"Consultant {consultant_id} not found.")
    return doc


async def update_consultant(
    collection: AsyncIOMotorCollection,
    expenses_collection: AsyncIOMotorCollection,
    consultant_id: str,
    changes: ConsultantUpdate,
) -> Consultant:
    """
    Applies a partial update. A rename is carried over to the Consultants-category
    expenses recorded under the previous name.
    """
    object_id = to_object_id(consultant_id, "consultant")
    fields = changes.model_dump(exclude_unset=True)
    if "name" in fields and fields["name"] is None:
        raise ValueError("Name cannot be empty")
    existing = await _find_consultant(collection, object_id, consultant_id)
    if fields.get("name") and await find_by_name(collection, fields["name"], exclude_id=object_id):
        logger.warning(f"Rejected rename of consultant {consultant_id} to duplicate name '{fields['name']}'")
        raise _duplicate(fields["name"])
    if "active" in fields and fields["active"] is None:
        fields.pop("active")

    update: Dict[str, Any] = {"$set": {**fields, "updatedAt": utcnow()}}
    if "specialization" in fields and not fields["specialization"]:
        update["$set"].pop("specialization")
        update["$unset"] = {"specialization": ""}
    try:
        updated = await collection.find_one_and_update(
            {"_id": object_id}, update, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError as e:
        raise _duplicate(fields.get("name", "")) from e
    except PyMongoError as e:
        logger.error(f"Database error updating consultant {consultant_id}: {e}")
        raise ConnectionError(f"Database error updating consultant: {e}") from e
    if updated is None:
        raise RecordNotFoundError(f"Consultant {consultant_id} not found.")

    old_name, new_name = existing["name"], updated["name"]
    if new_name != old_name:
        renamed = await expenses_service.rename_consultant_references(expenses_collection, old_name, new_name)
        logger.info(f"Renamed consultant '{old_name}' to '{new_name}' on {renamed} expenses")
    logger.info(f"Updated consultant {consultant_id}")
    return Consultant.from_document(updated)


async def delete_consultant(
    collection: AsyncIOMotorCollection, expenses_collection: AsyncIOMotorCollection, consultant_id: str
) -> Tuple[Consultant, bool]:
    """
    Removes a consultant, or only deactivates it when expenses still reference its name.
    Returns the consultant as it stands afterwards and whether it was deactivated rather than removed.
    """
    object_id = to_object_id(consultant_id, "consultant")
    doc = await _find_consultant(collection, object_id, consultant_id)

    references = await expenses_service.count_consultant_references(expenses_collection, doc["name"])
    try:
        if references:
            updated = await collection.find_one_and_update(
                {"_id": object_id},
                {"$set": {"active": False, "updatedAt": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
            logger.info(f"Consultant '{doc['name']}' has {references} expenses; marked inactive instead of deleting.")
            return Consultant.from_document(updated or doc), True
        await collection.delete_one({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error deleting consultant {consultant_id}: {e}")
        raise ConnectionError(f"Database error deleting consultant: {e}") from e
    logger.info(f"Deleted consultant '{doc['name']}' ({consultant_id})")
    return Consultant.from_document(doc), False
