from typing import Any

from pydantic import BaseModel

from shared.models.product import Product


class ErrorResponse(BaseModel):
    error: str
    details: Any = None


class HealthResponse(BaseModel):
    status: str
    version: str
    database: bool
    storage: bool


class BatchCreatedResponse(BaseModel):
    batch_id: str


class GeneratePromptsResponse(BaseModel):
    message: str
    success_count: int
    total_count: int
    updated_products: list[Product]


class UploadResult(BaseModel):
    url: str
    product_id: str
    human_id: str
    description: str
    batch_id: str


class UploadResponse(BaseModel):
    results: list[UploadResult]
