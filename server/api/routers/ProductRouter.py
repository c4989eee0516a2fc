"""Product router: owner-scoped CRUD on products and their assets."""

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from server.api.dependencies.auth import get_owned_product, get_owner_id, verify_api_key
from server.models.requests import AssetCreateRequest, ProductCreateRequest, ProductUpdateRequest
from shared.exceptions.errors import NotFound
from shared.models.product import Asset, AssetType, Product, ProductFilter

product_router = APIRouter(prefix="/api/products", dependencies=[Depends(verify_api_key)], tags=["Products"])


@product_router.get("")
async def list_products(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    stage: str | None = Query(None),
    status: str | None = Query(None),
    batch_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> JSONResponse:
    """List the caller's products, newest first."""
    product_filter = ProductFilter(batch_id=batch_id, stage=stage, status=status, page=page, limit=limit)
    result = await request.app.state.product_service.find_by_owner(owner_id, product_filter)
    return JSONResponse(content=result.model_dump(mode="json"))


@product_router.post("")
async def create_product(
    request: Request,
    body: ProductCreateRequest,
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Create a product for the caller.

    If the body carries image_config.base64_image a description is
    generated before the product is stored.
    """
    product = await request.app.state.workflow_service.do_create_product(owner_id, body)
    request.app.state.logging.info("Product %s created for owner %s", product.human_id, owner_id, color="green")
    return JSONResponse(content=product.model_dump(mode="json"), status_code=201)


@product_router.get("/{product_id}")
async def get_product(product: Product = Depends(get_owned_product)) -> JSONResponse:
    return JSONResponse(content=product.model_dump(mode="json"))


@product_router.patch("/{product_id}")
async def update_product(
    request: Request,
    body: ProductUpdateRequest,
    product: Product = Depends(get_owned_product),
) -> JSONResponse:
    """Apply a partial update. Nested objects replace the stored value wholesale."""
    updated = await request.app.state.product_service.update(product.id, body.to_fields())
    if updated is None:
        raise NotFound("Product not found")
    return JSONResponse(content=updated.model_dump(mode="json"))


@product_router.delete("/{product_id}", status_code=204)
async def delete_product(request: Request, product: Product = Depends(get_owned_product)) -> Response:
    await request.app.state.product_service.delete(product.id)
    return Response(status_code=204)


@product_router.get("/{product_id}/assets")
async def list_assets(
    asset_type: AssetType | None = Query(None, alias="type"),
    product: Product = Depends(get_owned_product),
) -> JSONResponse:
    """Every asset of the product, optionally only those of one type."""
    assets = [asset for asset in product.all_assets() if asset_type is None or asset.type == asset_type]
    return JSONResponse(content=[asset.model_dump(mode="json", exclude_none=True) for asset in assets])


@product_router.post("/{product_id}/assets")
async def add_asset(
    request: Request,
    body: AssetCreateRequest,
    product: Product = Depends(get_owned_product),
) -> JSONResponse:
    asset = Asset(**body.model_dump())
    updated = await request.app.state.product_service.append_asset(product.id, asset, body.type)
    if updated is None:
        raise NotFound("Product not found")
    return JSONResponse(content=updated.model_dump(mode="json"))
