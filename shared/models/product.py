"""Pydantic models for the Product entity and its embedded records.

Hierarchy:
  Asset           : one image file attached to a product (embedded).
  ProductBase     : fields a caller may supply when creating a product.
  ProductCreate   : create payload (ProductBase as-is).
  ProductUpdate   : partial update, checked before anything is written.
  Product         : the stored entity, with identifiers and timestamps.
  ProductFilter   : owner-scoped list query.
  ProductPage     : one page of a list query.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


def _normalize_timestamp(value: datetime) -> datetime:
    # the document store keeps millisecond precision and may hand back naive UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


Timestamp = Annotated[datetime, AfterValidator(_normalize_timestamp)]


def utc_now() -> datetime:
    """Current time as stored: timezone-aware UTC, millisecond precision."""
    return _normalize_timestamp(datetime.now(timezone.utc))


AssetType = Literal["original", "generated", "enhanced", "prompt"]
Quality = Literal["low", "medium", "high"]
ImageFormat = Literal["jpg", "png", "webp"]

# asset type -> product field holding assets of that type
ASSET_LIST_FIELDS: dict[str, str] = {
    "original": "original_images",
    "generated": "generated_images",
    "enhanced": "enhanced_images",
    "prompt": "prompt_images",
}


class Asset(BaseModel):
    """One image file attached to a product. Owned by its product, no own lifecycle."""

    url: str
    type: AssetType = "original"
    mime_type: str = "image/jpeg"
    size: int = 0
    width: int = 0
    height: int = 0
    created_at: Timestamp | None = None
    base64_image: str | None = None

    # per-asset overrides of the product's image config
    aspect_ratio: str | None = None
    art_style: str | None = None
    quality: Quality | None = None
    format: ImageFormat | None = None

    prompt: str | None = None
    metadata: dict[str, Any] | None = None


class ImageConfig(BaseModel):
    """Image settings of a product.

    base64_image is an in-flight payload for description generation,
    not a durable image store.
    """

    base64_image: str | None = None
    original_image_url: str | None = None
    generated_image_url: str | None = None
    enhanced_image_url: str | None = None
    final_image_url: str | None = None
    aspect_ratio: str | None = None
    art_style: str | None = None
    quality: Quality | None = None
    format: ImageFormat | None = None


class EnhancementOptions(BaseModel):
    remove_subject: bool | None = None
    remove_background: bool | None = None
    enhance_quality: bool | None = None
    compress: bool | None = None
    target_size: int | None = None  # bytes


class ReleaseInfo(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_release: bool | None = None
    property_release: bool | None = None
    editorial_release: bool | None = None


class Price(BaseModel):
    amount: float
    currency: str


class StockMetadata(BaseModel):
    """Stock-platform submission metadata. No cross-field consistency is enforced."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    category: str | None = None
    content_type: Literal["photo", "illustration", "vector"] | None = None
    editorial_usage: bool | None = None
    release_info: ReleaseInfo | None = None
    price: Price | None = None


class ProcessingError(BaseModel):
    """Write-once record of a failed processing step."""

    stage: str
    error: str
    timestamp: Timestamp


class ProductBase(BaseModel):
    """Caller-supplied product fields.

    stage and status are free-form workflow labels; nothing validates
    transitions between their values.
    """

    batch_id: str | None = None
    batch_name: str | None = None
    description: str | None = None
    stage: str | None = None
    status: str | None = None
    priority: int | None = None

    original_images: list[Asset] = []
    generated_images: list[Asset] = []
    enhanced_images: list[Asset] = []
    prompt_images: list[Asset] = []

    image_config: ImageConfig | None = None
    enhancement_options: EnhancementOptions | None = None
    metadata: StockMetadata | None = None


class ProductCreate(ProductBase):
    """Payload of ProductService.create(). Identifiers and timestamps are assigned by the store."""


class ProductUpdate(ProductBase):
    """Partial update of a stored product.

    Only the keys a caller passes are written. Identifiers and created_at are
    not fields here, so together with extra="forbid" they (and any
    operator-looking key such as "$set") are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    processing_errors: list[ProcessingError] = []
    completed_at: Timestamp | None = None

    @field_validator("batch_id")
    @classmethod
    def _batch_id_kept(cls, value):
        if value is None:
            raise ValueError("batch_id may not be cleared")
        return value


class Product(ProductBase):
    """A stored product.

    Attributes:
        id:          Store-generated identifier (hex ObjectId).
        owner_id:    Owning user; set at creation, never mutated.
        human_id:    "p-<n>" from the owner's product counter; immutable.
        batch_id:    "b-<n>"; shared by every product of the batch.
        processing_errors: Append-only error log.
    """

    id: str
    owner_id: str
    human_id: str
    batch_id: str
    processing_errors: list[ProcessingError] = []
    created_at: Timestamp
    updated_at: Timestamp
    completed_at: Timestamp | None = None

    @classmethod
    def from_document(cls, document: dict) -> "Product":
        """Build a Product from a raw `products` collection document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def all_assets(self) -> list[Asset]:
        """Every attached asset, originals first."""
        return [
            *self.original_images,
            *self.generated_images,
            *self.enhanced_images,
            *self.prompt_images,
        ]


class ProductFilter(BaseModel):
    """Owner-scoped list query. Unset fields do not filter."""

    batch_id: str | None = None
    stage: str | None = None
    status: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class ProductPage(BaseModel):
    items: list[Product]
    total: int
    page: int
    limit: int
    total_pages: int
