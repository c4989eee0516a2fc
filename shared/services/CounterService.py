"""Sequence generator.

Issues strictly increasing numbers per (owner_id, kind). Every increment is
a single atomic find-and-modify with upsert on the counter document, never
a read followed by a write, so concurrent callers for the same pair always
receive distinct values.
"""

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from shared.clients.db.DBClientInterface import DBClientInterface
from shared.exceptions.errors import StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.counter import Counter, CounterKind

COUNTERS_COLLECTION = "counters"


class CounterService:
    """Per-owner atomic counters backing the "p-<n>" / "b-<n>" identifiers."""

    def __init__(self, helper_config: HelperConfig, db_client: DBClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._db = db_client

    def _collection(self):
        return self._db.get_collection(COUNTERS_COLLECTION)

    async def ensure_indexes(self) -> None:
        """Create the unique (owner_id, kind) index so concurrent first upserts cannot fork a counter."""
        try:
            await self._collection().create_index(
                [("owner_id", ASCENDING), ("kind", ASCENDING)],
                unique=True,
                name="counters_owner_kind",
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not create counter indexes: {e}") from e

    ##########################################
    ################ CORE ####################
    ##########################################

    async def next_value(self, owner_id: str, kind: CounterKind) -> int:
        """Atomically increment the counter and return the new value.

        A missing counter document is created on the fly starting from 0,
        so the first call for a pair returns 1.

        Raises:
            StorageUnavailable: If the database call fails. Not retried.
        """
        kind = CounterKind(kind)
        try:
            document = await self._collection().find_one_and_update(
                {"owner_id": owner_id, "kind": kind.value},
                {"$inc": {"value": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not increment {kind.value} counter: {e}") from e
        value = document["value"]
        self.logging.debug("Issued %s sequence %d for owner %s", kind.value, value, owner_id)
        return value

    async def current_value(self, owner_id: str, kind: CounterKind) -> int:
        """Return the last issued value without changing it; 0 if nothing was issued yet."""
        kind = CounterKind(kind)
        try:
            document = await self._collection().find_one({"owner_id": owner_id, "kind": kind.value})
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not read {kind.value} counter: {e}") from e
        if document is None:
            return 0
        return Counter.model_validate(document).value

    async def reset(self, owner_id: str, kind: CounterKind) -> None:
        """Force the counter back to 0, creating it if absent.

        Administrative only: identifiers minted before the reset will be
        issued again.
        """
        kind = CounterKind(kind)
        try:
            await self._collection().update_one(
                {"owner_id": owner_id, "kind": kind.value},
                {"$set": {"value": 0}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageUnavailable(f"Could not reset {kind.value} counter: {e}") from e
        self.logging.warning("Reset %s counter for owner %s to 0.", kind.value, owner_id)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def next_identifier(self, owner_id: str, kind: CounterKind) -> str:
        """Mint the next "<prefix>-<n>" identifier for the given kind."""
        kind = CounterKind(kind)
        return f"{kind.prefix}-{await self.next_value(owner_id, kind)}"

    async def next_product_id(self, owner_id: str) -> str:
        return await self.next_identifier(owner_id, CounterKind.PRODUCT)

    async def next_batch_id(self, owner_id: str) -> str:
        return await self.next_identifier(owner_id, CounterKind.BATCH)
