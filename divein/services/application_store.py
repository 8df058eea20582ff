import logging
from typing import List, Sequence

from pymongo.errors import PyMongoError

from divein.db import get_collection
from divein.errors import StoreError
from divein.models.applications import Application

logger = logging.getLogger(__name__)


class ApplicationStore:
    def __init__(self, collection=None) -> None:
        self.collection = collection if collection is not None else get_collection("applications")

    async def insert(self, application: Application) -> Application:
        payload = application.model_dump(by_alias=True)
        try:
            await self.collection.insert_one(payload)
        except PyMongoError as exc:
            logger.exception("Failed to store application for opportunity %s", application.opportunity_id)
            raise StoreError("A apărut o eroare la trimiterea aplicației", cause=exc) from exc
        return application

    async def query_by_opportunity_ids(self, opportunity_ids: Sequence[str]) -> List[Application]:
        """Applications for any of the given opportunities, newest first."""
        if not opportunity_ids:
            return []
        try:
            cursor = self.collection.find({"opportunity_id": {"$in": list(opportunity_ids)}}).sort("created_at", -1)
            docs = await cursor.to_list(length=None)
        except PyMongoError as exc:
            logger.exception("Failed to load applications")
            raise StoreError("Eroare la încărcarea aplicațiilor", cause=exc) from exc
        return [Application(**doc) for doc in docs]


def get_application_store() -> ApplicationStore:
    return ApplicationStore()
