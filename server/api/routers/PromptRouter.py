"""Prompt router: (re)generate image descriptions for existing products."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from server.api.dependencies.auth import get_owner_id, verify_api_key
from server.models.requests import GeneratePromptsRequest
from server.models.responses import GeneratePromptsResponse

prompt_router = APIRouter(dependencies=[Depends(verify_api_key)], tags=["Prompts"])


@prompt_router.post("/api/products/generate-prompts")
async def generate_prompts(
    request: Request,
    body: GeneratePromptsRequest,
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Regenerate descriptions for the given products.

    Only the caller's products that still carry a base64 image are
    considered. Per-product failures are recorded on the product and do not
    fail the request as long as one product succeeded.
    """
    updated, total = await request.app.state.workflow_service.do_regenerate_descriptions(owner_id, body.product_ids)
    response = GeneratePromptsResponse(
        message=f"Successfully generated descriptions for {len(updated)} out of {total} products",
        success_count=len(updated),
        total_count=total,
        updated_products=updated,
    )
    return JSONResponse(content=response.model_dump(mode="json"))
