"""Workflow service: product creation and description (re)generation.

Sits between the routers and the store; the only place where the
description-generation backend and the product store meet.
"""

import asyncio

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions.errors import NotFound, UpstreamServiceError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.product import Asset, Product, ProductCreate
from shared.services.ProductService import ProductService

PROMPTS_STAGE = "prompts"
DEFAULT_STATUS = "draft"


class WorkflowService:
    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        product_service: ProductService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm = llm_client
        self._products = product_service

    ##########################################
    ################ CORE ####################
    ##########################################

    async def do_describe(self, base64_image: str) -> str:
        return await self._llm.do_describe_image(base64_image)

    async def do_create_product(self, owner_id: str, payload: ProductCreate) -> Product:
        """Create a product, describing its in-flight image first if one is attached.

        An original asset is synthesised from image_config.original_image_url
        when the payload carries no originals. Status defaults to "draft".
        """
        updates: dict = {}
        image_config = payload.image_config

        if image_config and image_config.base64_image:
            updates["description"] = await self.do_describe(image_config.base64_image)

        if image_config and image_config.original_image_url and not payload.original_images:
            updates["original_images"] = [Asset(url=image_config.original_image_url, type="original")]

        if payload.status is None:
            updates["status"] = DEFAULT_STATUS

        return await self._products.create(owner_id, payload.model_copy(update=updates))

    async def do_regenerate_descriptions(self, owner_id: str, product_ids: list[str]) -> tuple[list[Product], int]:
        """Regenerate descriptions for the caller's products that carry a base64 image.

        Runs concurrently. A failure on one product is logged and recorded on
        that product (stage "prompts") without aborting the others.

        Returns:
            tuple[list[Product], int]: (updated products, number of candidates)

        Raises:
            NotFound: If none of the ids is an owned product with an image.
            UpstreamServiceError: If every candidate failed.
        """
        products = await self._products.find_by_ids(product_ids)
        candidates = [
            product for product in products
            if product.owner_id == owner_id
            and product.image_config is not None
            and product.image_config.base64_image
        ]
        if not candidates:
            raise NotFound("No valid products found with base64 images")

        results = await asyncio.gather(*[self._regenerate_one(product) for product in candidates])
        updated = [product for product in results if product is not None]
        if not updated:
            raise UpstreamServiceError("Failed to update any products")

        self.logging.info(
            "Generated descriptions for %d of %d products of owner %s",
            len(updated), len(candidates), owner_id,
        )
        return updated, len(candidates)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _regenerate_one(self, product: Product) -> Product | None:
        try:
            description = await self.do_describe(product.image_config.base64_image)
        except (UpstreamServiceError, ValidationError) as e:
            self.logging.error("Failed to generate description for product %s: %s", product.human_id, e.message)
            await self._products.append_processing_error(product.id, PROMPTS_STAGE, e.message)
            return None

        updated = await self._products.update(product.id, {"description": description})
        if updated is None:
            # deleted while the description was being generated
            self.logging.warning("Product %s vanished before its description was stored", product.id)
        return updated
