import asyncio

import pytest
from bson import ObjectId

from mongo_double import FailingCollection
from shared.exceptions.errors import StorageUnavailable, ValidationError
from shared.models.counter import CounterKind
from shared.models.product import (
    Asset,
    ImageConfig,
    Price,
    ProductCreate,
    ProductFilter,
    StockMetadata,
)


def _create(product_service, owner_id="u1", **fields):
    return asyncio.run(product_service.create(owner_id, ProductCreate(**fields)))


def test_create_mints_identifiers(product_service):
    first = _create(product_service)
    second = _create(product_service)
    assert (first.human_id, first.batch_id) == ("p-1", "b-1")
    assert (second.human_id, second.batch_id) == ("p-2", "b-2")
    assert first.owner_id == "u1"
    assert first.created_at == first.updated_at
    assert first.created_at.tzinfo is not None


def test_explicit_batch_id_is_kept_and_does_not_consume_sequence(product_service, counter_service):
    _create(product_service)
    product = _create(product_service, batch_id="b-42")
    assert product.batch_id == "b-42"
    assert asyncio.run(counter_service.current_value("u1", CounterKind.BATCH)) == 1


def test_human_ids_follow_product_sequence_per_owner(product_service, counter_service):
    ids = [_create(product_service).human_id for _ in range(3)]
    other = _create(product_service, owner_id="u2")
    assert ids == ["p-1", "p-2", "p-3"]
    assert other.human_id == "p-1"
    assert asyncio.run(counter_service.current_value("u1", CounterKind.PRODUCT)) == 3


def test_create_then_find_round_trip(product_service):
    created = _create(
        product_service,
        batch_name="Autumn",
        description="leaves",
        stage="prompts",
        status="draft",
        priority=2,
        original_images=[Asset(url="https://cdn.example/a.jpg", size=10, width=4, height=3)],
        image_config=ImageConfig(aspect_ratio="3:2", quality="high"),
        metadata=StockMetadata(title="Leaves", tags=["autumn", "leaf"]),
    )
    found = asyncio.run(product_service.find_by_id(created.id))
    assert found == created
    assert found.original_images[0].url == "https://cdn.example/a.jpg"
    assert found.metadata.tags == ["autumn", "leaf"]


def test_find_by_id_unknown_or_malformed(product_service):
    assert asyncio.run(product_service.find_by_id(str(ObjectId()))) is None
    assert asyncio.run(product_service.find_by_id("not-an-object-id")) is None


def test_update_changes_only_given_fields(product_service):
    created = _create(product_service, description="old", stage="prompts", batch_name="B")
    updated = asyncio.run(product_service.update(created.id, {"description": "x"}))
    assert updated.description == "x"
    assert updated.updated_at >= created.updated_at
    excluded = {"description", "updated_at"}
    assert updated.model_dump(exclude=excluded) == created.model_dump(exclude=excluded)


def test_update_permits_partial_metadata(product_service):
    created = _create(product_service)
    updated = asyncio.run(
        product_service.update(created.id, {"metadata": {"price": Price(amount=9.5, currency="EUR").model_dump()}})
    )
    assert updated.metadata.price.amount == 9.5
    assert updated.metadata.title is None


def test_update_rejects_immutable_fields(product_service):
    created = _create(product_service)
    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(product_service.update(created.id, {"human_id": "p-99", "owner_id": "u2"}))
    assert excinfo.value.details == {"fields": ["human_id", "owner_id"]}


def test_update_rejects_values_that_do_not_fit_schema(product_service):
    created = _create(product_service, stage="prompts")
    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(product_service.update(created.id, {"stage": 5}))
    assert excinfo.value.details["errors"][0]["field"] == "stage"

    for fields in ({"batch_id": None}, {"original_images": None}, {"$set": {"stage": "x"}}, {"colour": "red"}):
        with pytest.raises(ValidationError):
            asyncio.run(product_service.update(created.id, fields))

    stored = asyncio.run(product_service.find_by_id(created.id))
    assert stored.stage == "prompts"
    assert stored.updated_at == created.updated_at


def test_update_replaces_asset_list_with_models(product_service):
    created = _create(product_service, original_images=[Asset(url="https://cdn.example/a.jpg")])
    replacement = [Asset(url="https://cdn.example/b.jpg", size=7), Asset(url="https://cdn.example/c.jpg")]
    updated = asyncio.run(
        product_service.update(created.id, {"original_images": replacement, "metadata": StockMetadata(title="Pear")})
    )
    assert [a.url for a in updated.original_images] == ["https://cdn.example/b.jpg", "https://cdn.example/c.jpg"]
    assert updated.original_images[0].size == 7
    assert updated.metadata.title == "Pear"
    assert asyncio.run(product_service.find_by_id(created.id)) == updated


def test_update_unknown_id_returns_none(product_service):
    assert asyncio.run(product_service.update(str(ObjectId()), {"description": "x"})) is None


def test_update_status_completed_stamps_completion(product_service):
    created = _create(product_service)
    processing = asyncio.run(product_service.update_status(created.id, "processing"))
    assert processing.status == "processing"
    assert processing.completed_at is None
    completed = asyncio.run(product_service.update_status(created.id, "completed"))
    assert completed.completed_at is not None
    staged = asyncio.run(product_service.update_stage(created.id, "metadata"))
    assert staged.stage == "metadata"


def test_append_asset_keeps_duplicates(product_service):
    created = _create(product_service)
    asset = Asset(url="https://cdn.example/g.png", mime_type="image/png", size=5)
    asyncio.run(product_service.append_asset(created.id, asset, "generated"))
    product = asyncio.run(product_service.append_asset(created.id, asset, "generated"))
    assert len(product.generated_images) == 2
    assert all(entry.type == "generated" and entry.created_at is not None for entry in product.generated_images)
    assert product.original_images == []
    assert product.updated_at >= created.updated_at


def test_append_asset_routes_by_type(product_service):
    created = _create(product_service)
    asset = Asset(url="https://cdn.example/p.jpg")
    product = asyncio.run(product_service.append_asset(created.id, asset, "prompt"))
    assert [entry.url for entry in product.prompt_images] == ["https://cdn.example/p.jpg"]
    assert [entry.type for entry in product.all_assets()] == ["prompt"]


def test_append_asset_unknown_product(product_service):
    asset = Asset(url="https://cdn.example/p.jpg")
    assert asyncio.run(product_service.append_asset(str(ObjectId()), asset, "original")) is None


def test_append_processing_error(product_service):
    created = _create(product_service, status="processing")
    product = asyncio.run(product_service.append_processing_error(created.id, "prompts", "rate limited"))
    product = asyncio.run(product_service.append_processing_error(product.id, "enhance", "timeout"))
    assert [(e.stage, e.error) for e in product.processing_errors] == [("prompts", "rate limited"), ("enhance", "timeout")]
    assert product.status == "failed"
    assert product.processing_errors[0].timestamp.tzinfo is not None


def test_delete_removes_product_and_back_reference(product_service):
    keep = _create(product_service)
    gone = _create(product_service)
    assert asyncio.run(product_service.get_owner_product_ids("u1")) == [keep.id, gone.id]

    assert asyncio.run(product_service.delete(gone.id)) is True
    assert asyncio.run(product_service.find_by_id(gone.id)) is None
    assert asyncio.run(product_service.get_owner_product_ids("u1")) == [keep.id]


def test_delete_missing_returns_false(product_service):
    assert asyncio.run(product_service.delete(str(ObjectId()))) is False
    assert asyncio.run(product_service.delete("garbage")) is False


def test_find_by_ids_omits_unknown(product_service):
    first = _create(product_service)
    second = _create(product_service, owner_id="u2")
    found = asyncio.run(product_service.find_by_ids([second.id, str(ObjectId()), "bad", first.id]))
    assert sorted(product.id for product in found) == sorted([first.id, second.id])
    assert asyncio.run(product_service.find_by_ids([])) == []


def test_find_by_owner_scenario(product_service):
    first = _create(product_service)
    second = _create(product_service, batch_id="b-1")
    _create(product_service)  # b-2
    _create(product_service, owner_id="u2", batch_id="b-1")

    assert (first.human_id, first.batch_id) == ("p-1", "b-1")
    assert (second.human_id, second.batch_id) == ("p-2", "b-1")

    page = asyncio.run(product_service.find_by_owner("u1", ProductFilter(batch_id="b-1", page=1, limit=10)))
    assert page.total == 2
    assert [product.human_id for product in page.items] == ["p-2", "p-1"]
    assert (page.page, page.limit, page.total_pages) == (1, 10, 1)


def test_find_by_owner_paginates_newest_first(product_service):
    for _ in range(5):
        _create(product_service)

    first_page = asyncio.run(product_service.find_by_owner("u1", ProductFilter(page=1, limit=2)))
    last_page = asyncio.run(product_service.find_by_owner("u1", ProductFilter(page=3, limit=2)))
    assert first_page.total == 5
    assert first_page.total_pages == 3
    assert [p.human_id for p in first_page.items] == ["p-5", "p-4"]
    assert [p.human_id for p in last_page.items] == ["p-1"]


def test_find_by_owner_filters_stage_and_status(product_service):
    _create(product_service, stage="prompts", status="draft")
    _create(product_service, stage="enhance", status="draft")
    _create(product_service, stage="prompts", status="completed")

    page = asyncio.run(product_service.find_by_owner("u1", ProductFilter(stage="prompts", status="draft")))
    assert [p.human_id for p in page.items] == ["p-1"]
    empty = asyncio.run(product_service.find_by_owner("nobody"))
    assert (empty.total, empty.total_pages, empty.items) == (0, 0, [])


def test_update_and_delete_batch(product_service):
    _create(product_service, batch_id="b-7")
    _create(product_service, batch_id="b-7")
    _create(product_service, batch_id="b-8")

    updated = asyncio.run(product_service.update_batch("u1", "b-7", {"stage": "enhance"}))
    assert [p.stage for p in updated] == ["enhance", "enhance"]
    assert asyncio.run(product_service.update_batch("u2", "b-7", {"stage": "x"})) == []

    assert asyncio.run(product_service.delete_batch("u1", "b-7")) == 2
    remaining = asyncio.run(product_service.find_by_owner("u1"))
    assert [p.batch_id for p in remaining.items] == ["b-8"]
    assert len(asyncio.run(product_service.get_owner_product_ids("u1"))) == 1


def test_storage_failure_is_reported(product_service, db_client, monkeypatch):
    created = _create(product_service)
    monkeypatch.setattr(db_client, "get_collection", lambda name: FailingCollection())
    with pytest.raises(StorageUnavailable):
        asyncio.run(product_service.find_by_id(created.id))
    with pytest.raises(StorageUnavailable):
        asyncio.run(product_service.find_by_owner("u1"))
    with pytest.raises(StorageUnavailable):
        asyncio.run(product_service.update(created.id, {"description": "x"}))


def test_back_reference_failure_propagates_after_insert(product_service, db_client, monkeypatch):
    real_get_collection = db_client.get_collection

    def get_collection(name):
        return FailingCollection() if name == "users" else real_get_collection(name)

    monkeypatch.setattr(db_client, "get_collection", get_collection)
    with pytest.raises(StorageUnavailable):
        _create(product_service)
    # the product write is not rolled back
    assert asyncio.run(real_get_collection("products").count_documents({})) == 1
