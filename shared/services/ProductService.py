"""Product lifecycle store.

The only mutation/query surface for products. Assigns identifiers at
creation, scopes list queries to an owner, and keeps the owner's
`users.products` back-reference list in step with inserts and deletes.

Consistency note: creating and deleting a product each touch two documents
(the product and the owner's user record) without a transaction. If the
second write fails the back-reference list can be left with a missing or a
stale entry; the error still propagates to the caller.
"""

import asyncio
import math
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from shared.clients.db.DBClientInterface import DBClientInterface
from shared.exceptions.errors import StorageUnavailable, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.product import (
    ASSET_LIST_FIELDS,
    Asset,
    AssetType,
    Product,
    ProductCreate,
    ProductFilter,
    ProductPage,
    ProductUpdate,
    utc_now,
)
from shared.services.CounterService import CounterService

PRODUCTS_COLLECTION = "products"
USERS_COLLECTION = "users"

# fields set once at creation
IMMUTABLE_FIELDS = frozenset({"id", "_id", "owner_id", "human_id", "created_at"})


def _to_object_id(product_id: str) -> ObjectId | None:
    try:
        return ObjectId(product_id)
    except (InvalidId, TypeError):
        return None


class ProductService:
    """Repository for products; see module docstring for the consistency model."""

    def __init__(
        self,
        helper_config: HelperConfig,
        db_client: DBClientInterface,
        counter_service: CounterService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._db = db_client
        self._counters = counter_service

    def _products(self):
        return self._db.get_collection(PRODUCTS_COLLECTION)

    def _users(self):
        return self._db.get_collection(USERS_COLLECTION)

    async def ensure_indexes(self) -> None:
        """Create the indexes the list queries rely on."""
        try:
            products = self._products()
            await products.create_index([("owner_id", ASCENDING)])
            await products.create_index([("batch_id", ASCENDING)])
            await products.create_index([("stage", ASCENDING)])
            await products.create_index([("status", ASCENDING)])
            await products.create_index([("created_at", DESCENDING)])
            await products.create_index(
                [("owner_id", ASCENDING), ("stage", ASCENDING), ("status", ASCENDING)],
                name="products_workflow_index",
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not create product indexes: {e}") from e

    ##########################################
    ################ CREATE ##################
    ##########################################

    async def create(self, owner_id: str, payload: ProductCreate) -> Product:
        """Persist a new product for the owner.

        human_id is always minted from the owner's product counter. batch_id
        is taken from the payload when given, otherwise minted from the
        owner's batch counter.

        Raises:
            StorageUnavailable: If any database write fails.
        """
        human_id = await self._counters.next_product_id(owner_id)
        batch_id = payload.batch_id or await self._counters.next_batch_id(owner_id)
        now = utc_now()

        document: dict[str, Any] = payload.model_dump(exclude_none=True)
        document.update(
            owner_id=owner_id,
            human_id=human_id,
            batch_id=batch_id,
            processing_errors=[],
            created_at=now,
            updated_at=now,
        )

        try:
            result = await self._products().insert_one(document)
            document["_id"] = result.inserted_id
            await self._users().update_one(
                {"_id": owner_id},
                {
                    "$push": {"products": result.inserted_id},
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not create product for owner {owner_id}: {e}") from e

        product = Product.from_document(document)
        self.logging.info(
            "Created product %s (%s) in batch %s for owner %s",
            product.human_id, product.id, product.batch_id, owner_id,
        )
        return product

    ##########################################
    ################# READ ###################
    ##########################################

    async def find_by_id(self, product_id: str) -> Product | None:
        """Look up one product; None when it does not exist."""
        object_id = _to_object_id(product_id)
        if object_id is None:
            return None
        try:
            document = await self._products().find_one({"_id": object_id})
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not read product {product_id}: {e}") from e
        return Product.from_document(document) if document else None

    async def find_by_owner(self, owner_id: str, filter: ProductFilter | None = None) -> ProductPage:
        """List the owner's products, newest first, one page at a time."""
        filter = filter or ProductFilter()
        query: dict[str, Any] = {"owner_id": owner_id}
        if filter.batch_id:
            query["batch_id"] = filter.batch_id
        if filter.stage:
            query["stage"] = filter.stage
        if filter.status:
            query["status"] = filter.status

        skip = (filter.page - 1) * filter.limit
        try:
            cursor = (
                self._products()
                .find(query)
                .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
                .skip(skip)
                .limit(filter.limit)
            )
            documents, total = await asyncio.gather(
                cursor.to_list(length=None),
                self._products().count_documents(query),
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not list products of owner {owner_id}: {e}") from e

        return ProductPage(
            items=[Product.from_document(doc) for doc in documents],
            total=total,
            page=filter.page,
            limit=filter.limit,
            total_pages=math.ceil(total / filter.limit),
        )

    async def find_by_ids(self, product_ids: list[str]) -> list[Product]:
        """Batch lookup; unknown or malformed ids are left out of the result."""
        object_ids = [oid for oid in map(_to_object_id, product_ids) if oid is not None]
        if not object_ids:
            return []
        try:
            documents = await self._products().find({"_id": {"$in": object_ids}}).to_list(length=None)
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not read products: {e}") from e
        return [Product.from_document(doc) for doc in documents]

    ##########################################
    ################ UPDATE ##################
    ##########################################

    async def _find_one_and_update(self, product_id: str, update: dict) -> Product | None:
        object_id = _to_object_id(product_id)
        if object_id is None:
            return None
        try:
            document = await self._products().find_one_and_update(
                {"_id": object_id},
                update,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not update product {product_id}: {e}") from e
        return Product.from_document(document) if document else None

    async def update(self, product_id: str, fields: dict[str, Any]) -> Product | None:
        """Merge the given top-level fields into the product and stamp updated_at.

        Nested values replace the stored value wholesale and may be given as
        plain dicts or as the matching models. Every value is checked against
        the product schema before the write. No cross-field consistency is
        checked and ownership is the caller's business.

        Raises:
            ValidationError: If an immutable or unknown field is part of the
                update, or a value does not fit the product schema.
        """
        forbidden = sorted(IMMUTABLE_FIELDS.intersection(fields))
        if forbidden:
            raise ValidationError(
                "Immutable product fields cannot be updated.",
                details={"fields": forbidden},
            )
        try:
            checked = ProductUpdate.model_validate(fields)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError("Invalid product update.", details={"errors": errors}) from e
        changes = {**checked.model_dump(include=set(fields)), "updated_at": utc_now()}
        return await self._find_one_and_update(product_id, {"$set": changes})

    async def update_stage(self, product_id: str, stage: str) -> Product | None:
        return await self.update(product_id, {"stage": stage})

    async def update_status(self, product_id: str, status: str) -> Product | None:
        fields: dict[str, Any] = {"status": status}
        if status == "completed":
            fields["completed_at"] = utc_now()
        return await self.update(product_id, fields)

    async def append_asset(self, product_id: str, asset: Asset, asset_type: AssetType) -> Product | None:
        """Append one asset to the list matching its type. Duplicates are kept."""
        list_field = ASSET_LIST_FIELDS.get(asset_type)
        if list_field is None:
            raise ValidationError(f"Unknown asset type '{asset_type}'.")
        now = utc_now()
        entry = asset.model_copy(update={"type": asset_type, "created_at": now}).model_dump(exclude_none=True)
        return await self._find_one_and_update(
            product_id,
            {"$push": {list_field: entry}, "$set": {"updated_at": now}},
        )

    async def append_processing_error(self, product_id: str, stage: str, message: str) -> Product | None:
        """Log a failed processing step on the product and mark it failed."""
        now = utc_now()
        return await self._find_one_and_update(
            product_id,
            {
                "$push": {"processing_errors": {"stage": stage, "error": message, "timestamp": now}},
                "$set": {"status": "failed", "updated_at": now},
            },
        )

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def delete(self, product_id: str) -> bool:
        """Remove the product, then pull it from the owner's back-reference list.

        Returns:
            bool: False if the product did not exist.
        """
        product = await self.find_by_id(product_id)
        if product is None:
            return False
        object_id = ObjectId(product.id)
        try:
            result = await self._products().delete_one({"_id": object_id})
            if result.deleted_count != 1:
                return False
            await self._users().update_one(
                {"_id": product.owner_id},
                {"$pull": {"products": object_id}, "$set": {"updated_at": utc_now()}},
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not delete product {product_id}: {e}") from e
        self.logging.info("Deleted product %s (%s) of owner %s", product.human_id, product.id, product.owner_id)
        return True

    ##########################################
    ################ BATCHES #################
    ##########################################

    async def find_batch(self, owner_id: str, batch_id: str, limit: int = 100) -> list[Product]:
        """All products (up to limit) the owner has in the batch, newest first."""
        page = await self.find_by_owner(owner_id, ProductFilter(batch_id=batch_id, page=1, limit=limit))
        return page.items

    async def update_batch(self, owner_id: str, batch_id: str, fields: dict[str, Any]) -> list[Product]:
        """Apply the same partial update to every product of the batch.

        Returns:
            list[Product]: The batch after the update; empty if the batch has no products.
        """
        products = await self.find_batch(owner_id, batch_id)
        if not products:
            return []
        await asyncio.gather(*[self.update(product.id, fields) for product in products])
        return await self.find_batch(owner_id, batch_id)

    async def delete_batch(self, owner_id: str, batch_id: str) -> int:
        """Delete every product of the batch; returns how many were removed."""
        products = await self.find_batch(owner_id, batch_id)
        results = await asyncio.gather(*[self.delete(product.id) for product in products])
        return sum(1 for deleted in results if deleted)

    async def get_owner_product_ids(self, owner_id: str) -> list[str]:
        """The owner's back-reference list as stored on the user record."""
        try:
            user = await self._users().find_one({"_id": owner_id})
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not read user {owner_id}: {e}") from e
        if not user:
            return []
        return [str(oid) for oid in user.get("products", [])]
