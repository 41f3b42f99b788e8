"""Personal fragrance collections."""

import logging
from collections import Counter
from typing import Any, Optional
from uuid import UUID, uuid4

from fragrance_battle.core.errors import ConflictError, NotFoundError
from fragrance_battle.domain.entities import Collection, CollectionItem, Page, User
from fragrance_battle.domain.repositories import ICollectionRepository, IFragranceRepository

logger = logging.getLogger(__name__)

_ITEM_FIELDS = ("personal_rating", "personal_notes", "bottle_size")


def _decade(year: Optional[int]) -> str:
    return f"{year // 10 * 10}s" if year else "Unknown"


class CollectionService:

    def __init__(
        self,
        collection_repository: ICollectionRepository,
        fragrance_repository: IFragranceRepository,
    ):
        self.collection_repository = collection_repository
        self.fragrance_repository = fragrance_repository

    async def list_collections(self, user: User, page: int = 1, limit: int = 20) -> Page[Collection]:
        items, total = await self.collection_repository.list_by_user(
            user.id, Page.offset(page, limit), limit
        )
        return Page(items=items, page=page, limit=limit, total_count=total)

    async def create_collection(self, user: User, name: str, description: Optional[str] = None) -> Collection:
        collection = await self.collection_repository.create(
            Collection(id=uuid4(), user_id=user.id, name=name, description=description)
        )
        logger.info("Collection %s created by %s", collection.id, user.id)
        return collection

    async def get_collection(self, user: User, collection_id: UUID) -> Collection:
        """Collections are private: another user's collection is reported as missing."""
        collection = await self.collection_repository.get_by_id(collection_id)
        if collection is None or collection.user_id != user.id:
            raise NotFoundError("Collection")
        return collection

    async def update_collection(self, user: User, collection_id: UUID, changes: dict[str, Any]) -> Collection:
        collection = await self.get_collection(user, collection_id)
        if "name" in changes and changes["name"] is not None:
            collection.name = changes["name"]
        if "description" in changes:
            collection.description = changes["description"]
        return await self.collection_repository.update(collection)

    async def delete_collection(self, user: User, collection_id: UUID) -> None:
        await self.get_collection(user, collection_id)
        await self.collection_repository.delete(collection_id)
        logger.info("Collection %s deleted by %s", collection_id, user.id)

    async def add_item(
        self,
        user: User,
        collection_id: UUID,
        fragrance_id: UUID,
        personal_rating: Optional[int] = None,
        personal_notes: Optional[str] = None,
        bottle_size: Optional[str] = None,
    ) -> CollectionItem:
        await self.get_collection(user, collection_id)
        if await self.fragrance_repository.get_by_id(fragrance_id) is None:
            raise NotFoundError("Fragrance")
        if await self.collection_repository.find_item(collection_id, fragrance_id):
            raise ConflictError("Fragrance already in collection", code="DUPLICATE_ITEM")
        return await self.collection_repository.add_item(
            CollectionItem(
                id=uuid4(),
                collection_id=collection_id,
                fragrance_id=fragrance_id,
                personal_rating=personal_rating,
                personal_notes=personal_notes,
                bottle_size=bottle_size,
            )
        )

    async def _get_item(self, user: User, collection_id: UUID, item_id: UUID) -> CollectionItem:
        await self.get_collection(user, collection_id)
        item = await self.collection_repository.get_item(item_id)
        if item is None or item.collection_id != collection_id:
            raise NotFoundError("Collection item")
        return item

    async def update_item(
        self, user: User, collection_id: UUID, item_id: UUID, changes: dict[str, Any]
    ) -> CollectionItem:
        item = await self._get_item(user, collection_id, item_id)
        for key in _ITEM_FIELDS:
            if key in changes:
                setattr(item, key, changes[key])
        return await self.collection_repository.update_item(item)

    async def remove_item(self, user: User, collection_id: UUID, item_id: UUID) -> None:
        await self._get_item(user, collection_id, item_id)
        await self.collection_repository.delete_item(item_id)

    async def get_stats(self, user: User, collection_id: UUID) -> dict:
        collection = await self.get_collection(user, collection_id)
        fragrances = [item.fragrance for item in collection.items if item.fragrance]
        ratings = [i.personal_rating for i in collection.items if i.personal_rating is not None]
        return {
            "total_items": len(collection.items),
            "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else None,
            "by_brand": dict(Counter(f.brand for f in fragrances).most_common()),
            "by_decade": dict(sorted(Counter(_decade(f.year) for f in fragrances).items())),
            "by_concentration": dict(
                Counter(f.concentration or "Unknown" for f in fragrances).most_common()
            ),
        }
