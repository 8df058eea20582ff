import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from divein.config import _now_utc, settings
from divein.db import get_collection
from divein.errors import NotFoundError, PermissionDeniedError, StoreError, ValidationError
from divein.models.opportunities import Opportunity

logger = logging.getLogger(__name__)

# Never writable through a patch
_PROTECTED_FIELDS = {"_id", "id", "author_id", "created_at"}
# Never cleared through a patch
_REQUIRED_FIELDS = ("title", "description", "category", "external_link", "status")


class OpportunityStore:
    """
    Persistence for opportunities.

    Every mutation is filtered by author_id as well as _id, so a caller can only
    ever touch records it authored, whatever the route layer checked before.
    """

    def __init__(self, collection=None, enforce_expiry: Optional[bool] = None) -> None:
        self.collection = collection if collection is not None else get_collection("opportunities")
        self.enforce_expiry = settings.enforce_expiry if enforce_expiry is None else enforce_expiry

    def _active_filter(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        query: Dict[str, Any] = {"status": "active"}
        if self.enforce_expiry:
            query["$or"] = [
                {"expires_at": None},
                {"expires_at": {"$gt": now or _now_utc()}},
            ]
        return query

    async def insert(self, opportunity: Opportunity) -> Opportunity:
        now = _now_utc()
        payload = opportunity.model_dump(by_alias=True)
        payload["created_at"] = now
        payload["updated_at"] = now
        try:
            await self.collection.insert_one(payload)
        except PyMongoError as exc:
            logger.exception("Failed to insert opportunity for author %s", opportunity.author_id)
            raise StoreError("Eroare la adăugarea oportunității", cause=exc) from exc
        logger.info("Opportunity %s created by %s", payload["_id"], opportunity.author_id)
        return Opportunity(**payload)

    async def update(self, opportunity_id: str, patch: Dict[str, Any], author_id: str) -> Opportunity:
        update_dict = {k: v for k, v in patch.items() if k not in _PROTECTED_FIELDS}
        for field in _REQUIRED_FIELDS:
            if field in update_dict and update_dict[field] is None:
                raise ValidationError(field, "must not be empty")
        update_dict["updated_at"] = _now_utc()
        try:
            result = await self.collection.update_one(
                {"_id": opportunity_id, "author_id": author_id},
                {"$set": update_dict},
            )
            if not result.matched_count:
                await self._raise_missing_or_forbidden(opportunity_id)
            doc = await self.collection.find_one({"_id": opportunity_id})
        except PyMongoError as exc:
            logger.exception("Failed to update opportunity %s", opportunity_id)
            raise StoreError("Eroare la actualizarea oportunității", cause=exc) from exc
        if not doc:
            raise NotFoundError("Oportunitatea nu a fost găsită")
        return Opportunity(**doc)

    async def delete(self, opportunity_id: str, author_id: str) -> None:
        try:
            result = await self.collection.delete_one({"_id": opportunity_id, "author_id": author_id})
            if not result.deleted_count:
                await self._raise_missing_or_forbidden(opportunity_id)
        except PyMongoError as exc:
            logger.exception("Failed to delete opportunity %s", opportunity_id)
            raise StoreError("Eroare la ștergerea oportunității", cause=exc) from exc
        logger.info("Opportunity %s deleted by %s", opportunity_id, author_id)

    async def query_active(self, now: Optional[datetime] = None) -> List[Opportunity]:
        """Active opportunities, newest first."""
        return await self._find(self._active_filter(now))

    async def query_by_author(self, author_id: str) -> List[Opportunity]:
        """Every opportunity of one organization regardless of status, newest first."""
        return await self._find({"author_id": author_id})

    async def get_by_id(self, opportunity_id: str, active_only: bool = False, now: Optional[datetime] = None) -> Opportunity:
        query: Dict[str, Any] = self._active_filter(now) if active_only else {}
        query["_id"] = opportunity_id
        try:
            doc = await self.collection.find_one(query)
        except PyMongoError as exc:
            logger.exception("Failed to load opportunity %s", opportunity_id)
            raise StoreError("Eroare la încărcarea oportunității", cause=exc) from exc
        if not doc:
            raise NotFoundError("Oportunitatea nu a fost găsită")
        return Opportunity(**doc)

    async def _find(self, query: Dict[str, Any]) -> List[Opportunity]:
        try:
            docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        except PyMongoError as exc:
            logger.exception("Failed to query opportunities")
            raise StoreError("Eroare la încărcarea oportunităților", cause=exc) from exc
        return [Opportunity(**doc) for doc in docs]

    async def _raise_missing_or_forbidden(self, opportunity_id: str) -> None:
        existing = await self.collection.find_one({"_id": opportunity_id})
        if not existing:
            raise NotFoundError("Oportunitatea nu a fost găsită")
        raise PermissionDeniedError("Nu ai permisiunea să modifici această oportunitate")


def get_opportunity_store() -> OpportunityStore:
    return OpportunityStore()
