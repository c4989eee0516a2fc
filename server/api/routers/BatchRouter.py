"""Batch router: mint batch ids and operate on all products of a batch at once."""

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from server.api.dependencies.auth import get_owner_id, verify_api_key
from server.models.requests import BatchDeleteRequest, BatchUpdateRequest, CreateBatchRequest
from server.models.responses import BatchCreatedResponse
from shared.exceptions.errors import NotFound
from shared.models.product import ProductFilter

BATCH_LIMIT = 100

batch_router = APIRouter(dependencies=[Depends(verify_api_key)], tags=["Batches"])


@batch_router.post("/api/batches/new")
async def create_batch(
    request: Request,
    body: CreateBatchRequest | None = None,
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Reserve the caller's next batch id. Nothing is stored besides the counter."""
    batch_id = await request.app.state.counter_service.next_batch_id(owner_id)
    request.app.state.logging.info(
        "Batch %s (%s) reserved for owner %s",
        batch_id, (body.batch_name if body else None) or "unnamed", owner_id,
    )
    return JSONResponse(content=BatchCreatedResponse(batch_id=batch_id).model_dump())


@batch_router.get("/api/products/batch")
async def get_batch(
    request: Request,
    batch_id: str = Query(..., min_length=1),
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    result = await request.app.state.product_service.find_by_owner(
        owner_id, ProductFilter(batch_id=batch_id, page=1, limit=BATCH_LIMIT)
    )
    return JSONResponse(content=result.model_dump(mode="json"))


@batch_router.patch("/api/products/batch")
async def update_batch(
    request: Request,
    body: BatchUpdateRequest,
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Apply the same partial update to every product of the batch."""
    product_service = request.app.state.product_service
    updated = await product_service.update_batch(owner_id, body.batch_id, body.updates.to_fields())
    if not updated:
        raise NotFound("No products found for batch")
    result = await product_service.find_by_owner(
        owner_id, ProductFilter(batch_id=body.batch_id, page=1, limit=BATCH_LIMIT)
    )
    return JSONResponse(content=result.model_dump(mode="json"))


@batch_router.delete("/api/products/batch", status_code=204)
async def delete_batch(
    request: Request,
    body: BatchDeleteRequest,
    owner_id: str = Depends(get_owner_id),
) -> Response:
    deleted = await request.app.state.product_service.delete_batch(owner_id, body.batch_id)
    if not deleted:
        raise NotFound("No products found for batch")
    request.app.state.logging.info("Deleted %d products of batch %s", deleted, body.batch_id)
    return Response(status_code=204)
