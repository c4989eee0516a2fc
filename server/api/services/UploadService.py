"""Upload service: stores incoming image files and turns each into a product."""

import asyncio
import base64
import io
from dataclasses import dataclass
from pathlib import PurePath

from PIL import Image, ImageOps

from server.api.services.WorkflowService import DEFAULT_STATUS, PROMPTS_STAGE, WorkflowService
from server.models.responses import UploadResult
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.exceptions.errors import ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.product import Asset, ImageConfig, Product, ProductCreate, utc_now
from shared.services.ProductService import ProductService

LIBRARY_FOLDER = "library"
PROMPTS_FOLDER = "prompts"


@dataclass
class IncomingFile:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass
class NormalizedImage:
    content: bytes
    width: int
    height: int


class UploadService:
    def __init__(
        self,
        helper_config: HelperConfig,
        storage_client: StorageClientInterface,
        workflow_service: WorkflowService,
        product_service: ProductService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._storage = storage_client
        self._workflow = workflow_service
        self._products = product_service
        self.max_dimension = helper_config.get_number_val("UPLOAD_MAX_DIMENSION", default=2000)
        self.jpeg_quality = helper_config.get_number_val("UPLOAD_JPEG_QUALITY", default=85)

    ##########################################
    ################ CORE ####################
    ##########################################

    async def do_upload_batch(
        self,
        owner_id: str,
        files: list[IncomingFile],
        batch_id: str | None,
        batch_name: str | None = None,
        stage: str | None = None,
    ) -> list[UploadResult]:
        """Store every file, describe it and create one product per file in the batch.

        Raises:
            ValidationError: If batch_id is missing or no files were sent.
        """
        if not batch_id:
            raise ValidationError("Batch ID is required")
        if not files:
            raise ValidationError("No files uploaded")

        self.logging.info("Received %d files for batch %s (%s)", len(files), batch_id, batch_name or "unnamed")
        results = await asyncio.gather(*[
            self._upload_one(owner_id, file, batch_id, batch_name, stage or PROMPTS_STAGE)
            for file in files
        ])
        self.logging.info("Processed %d files for batch %s", len(results), batch_id, color="green")
        return list(results)

    async def do_upload_library_image(self, owner_id: str, file: IncomingFile, batch_id: str | None = None) -> Product:
        """Normalise one image, store it in the library folder and create a product for it.

        The processed JPEG travels along as image_config.base64_image so a
        description can be generated later.
        """
        normalized = await asyncio.to_thread(self.normalize_image, file.content)
        stem = PurePath(file.filename or "upload").stem or "upload"
        url = await self._storage.do_upload_file(
            normalized.content,
            f"{stem}.jpg",
            folder=LIBRARY_FOLDER,
            content_type="image/jpeg",
        )
        payload = ProductCreate(
            batch_id=batch_id or None,
            original_images=[
                Asset(
                    url=url,
                    type="original",
                    mime_type="image/jpeg",
                    size=len(normalized.content),
                    width=normalized.width,
                    height=normalized.height,
                    created_at=utc_now(),
                )
            ],
            image_config=ImageConfig(
                base64_image=base64.b64encode(normalized.content).decode("ascii"),
                original_image_url=url,
            ),
        )
        return await self._products.create(owner_id, payload)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def normalize_image(self, content: bytes) -> NormalizedImage:
        """Fit the image inside max_dimension x max_dimension (never enlarging) and re-encode as JPEG.

        Raises:
            ValidationError: If the bytes are not a readable image or exceed
                Pillow's decompression bomb limit.
        """
        try:
            with Image.open(io.BytesIO(content)) as image:
                image = ImageOps.exif_transpose(image)
                image.thumbnail((self.max_dimension, self.max_dimension))
                if image.mode != "RGB":
                    image = image.convert("RGB")
                buffer = io.BytesIO()
                image.save(buffer, format="JPEG", quality=self.jpeg_quality)
                width, height = image.size
        except Image.DecompressionBombError as e:
            raise ValidationError(f"Image is too large to process: {e}") from e
        except OSError as e:  # UnidentifiedImageError included
            raise ValidationError(f"Unreadable image file: {e}") from e
        return NormalizedImage(content=buffer.getvalue(), width=width, height=height)

    async def _upload_one(
        self,
        owner_id: str,
        file: IncomingFile,
        batch_id: str,
        batch_name: str | None,
        stage: str,
    ) -> UploadResult:
        self.logging.debug("Processing file %s (%d bytes)", file.filename, len(file.content))
        content_type = file.content_type or self._storage.guess_content_type(file.filename, default="image/jpeg")
        url = await self._storage.do_upload_file(file.content, file.filename, folder=PROMPTS_FOLDER, content_type=content_type)

        base64_image = base64.b64encode(file.content).decode("ascii")
        description = await self._workflow.do_describe(f"data:{content_type};base64,{base64_image}")

        product = await self._products.create(
            owner_id,
            ProductCreate(
                batch_id=batch_id,
                batch_name=batch_name,
                stage=stage,
                status=DEFAULT_STATUS,
                description=description,
                original_images=[
                    Asset(
                        url=url,
                        type="original",
                        mime_type=content_type,
                        size=len(file.content),
                        created_at=utc_now(),
                        base64_image=base64_image,
                    )
                ],
            ),
        )
        return UploadResult(
            url=url,
            product_id=product.id,
            human_id=product.human_id,
            description=description,
            batch_id=product.batch_id,
        )
