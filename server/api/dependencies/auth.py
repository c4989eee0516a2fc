from fastapi import Depends, Header, HTTPException, Request

from shared.exceptions.errors import NotFound, Unauthorized
from shared.models.product import Product


async def verify_api_key(request: Request, x_api_key: str = Header(...)) -> None:
    """Verify the X-Api-Key header against the configured API key.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str): The value of the X-Api-Key header.

    Raises:
        HTTPException: 401 if the key is missing or does not match.
    """
    helper_config = request.app.state.config
    expected_key = helper_config.get_string_val("APP_API_KEY")
    if x_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def get_owner_id(x_user_id: str = Header(...)) -> str:
    """Resolve the calling user from the X-User-Id header.

    Sessions are handled upstream; the id is trusted as given.

    Raises:
        HTTPException: 401 if the header is blank.
    """
    owner_id = x_user_id.strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return owner_id


async def get_owned_product(
    request: Request,
    product_id: str,
    owner_id: str = Depends(get_owner_id),
) -> Product:
    """Load the product named in the path and check it belongs to the caller.

    Raises:
        NotFound: If the product does not exist (404).
        Unauthorized: If it belongs to someone else (403).
    """
    product = await request.app.state.product_service.find_by_id(product_id)
    if product is None:
        raise NotFound("Product not found")
    if product.owner_id != owner_id:
        raise Unauthorized("Unauthorized")
    return product
