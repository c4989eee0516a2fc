from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shared.models.product import (
    AssetType,
    EnhancementOptions,
    ImageConfig,
    ProductCreate,
    StockMetadata,
)


class CreateBatchRequest(BaseModel):
    batch_name: str | None = None


class ProductCreateRequest(ProductCreate):
    model_config = ConfigDict(extra="forbid")


class ProductUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are written."""

    model_config = ConfigDict(extra="forbid")

    batch_name: str | None = None
    description: str | None = None
    stage: str | None = None
    status: str | None = None
    priority: int | None = None
    image_config: ImageConfig | None = None
    enhancement_options: EnhancementOptions | None = None
    metadata: StockMetadata | None = None

    def to_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BatchUpdateRequest(BaseModel):
    batch_id: str = Field(min_length=1)
    updates: ProductUpdateRequest


class BatchDeleteRequest(BaseModel):
    batch_id: str = Field(min_length=1)


class AssetCreateRequest(BaseModel):
    type: AssetType
    url: str = Field(min_length=1)
    mime_type: str
    size: int = Field(ge=0)
    width: int = 0
    height: int = 0
    prompt: str | None = None
    metadata: dict[str, Any] | None = None


class GeneratePromptsRequest(BaseModel):
    product_ids: list[str] = Field(min_length=1)
