"""Upload router: multipart image uploads that become products."""

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from server.api.dependencies.auth import get_owner_id, verify_api_key
from server.api.services.UploadService import IncomingFile
from server.models.responses import UploadResponse
from shared.exceptions.errors import ValidationError

upload_router = APIRouter(dependencies=[Depends(verify_api_key)], tags=["Upload"])


async def _read(upload: UploadFile) -> IncomingFile:
    return IncomingFile(
        filename=upload.filename or "upload",
        content=await upload.read(),
        content_type=upload.content_type,
    )


@upload_router.post("/api/upload")
async def upload_files(
    request: Request,
    files: list[UploadFile] | None = File(None),
    batch_id: str | None = Form(None),
    batch_name: str | None = Form(None),
    stage: str | None = Form(None),
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Store each file, describe it and create one product per file in the batch."""
    incoming = [await _read(upload) for upload in files or []]
    results = await request.app.state.upload_service.do_upload_batch(
        owner_id, incoming, batch_id=batch_id, batch_name=batch_name, stage=stage
    )
    return JSONResponse(content=UploadResponse(results=results).model_dump())


@upload_router.post("/api/products/upload")
async def upload_library_image(
    request: Request,
    file: UploadFile | None = File(None),
    batch_id: str | None = Form(None),
    owner_id: str = Depends(get_owner_id),
) -> JSONResponse:
    """Normalise a single image, store it in the library and create a product for it."""
    if file is None:
        raise ValidationError("No file provided")
    product = await request.app.state.upload_service.do_upload_library_image(
        owner_id, await _read(file), batch_id=batch_id
    )
    return JSONResponse(content=product.model_dump(mode="json"))
