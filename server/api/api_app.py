"""FastAPI application entry point for the AutoStock API."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from server.api.routers.BatchRouter import batch_router
from server.api.routers.HealthRouter import health_router
from server.api.routers.ProductRouter import product_router
from server.api.routers.PromptRouter import prompt_router
from server.api.routers.UploadRouter import upload_router
from server.api.services.UploadService import UploadService
from server.api.services.WorkflowService import WorkflowService
from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.DBClientManager import DBClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.clients.storage.StorageClientManager import StorageClientManager
from shared.clients.storage.local.StorageClientLocal import StorageClientLocal
from shared.exceptions.errors import (
    AutoStockError,
    NotFound,
    StorageUnavailable,
    Unauthorized,
    UpstreamServiceError,
    ValidationError,
)
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.services.CounterService import CounterService
from shared.services.ProductService import ProductService

app_version = os.getenv("APP_VERSION", "unknown")

# most specific first; the first match wins
_ERROR_STATUS: list[tuple[type[AutoStockError], int]] = [
    (ValidationError, 400),
    (Unauthorized, 403),
    (NotFound, 404),
    (StorageUnavailable, 503),
    (UpstreamServiceError, 502),
]


##########################################
############### WIRING ###################
##########################################

def wire_services(
    app: FastAPI,
    helper_config: HelperConfig,
    db_client: DBClientInterface,
    llm_client: LLMClientInterface,
    storage_client: StorageClientInterface,
) -> None:
    """Build the service graph on top of booted clients and publish it on app.state."""
    app.state.config = helper_config
    app.state.logging = helper_config.get_logger()
    app.state.db_client = db_client
    app.state.llm_client = llm_client
    app.state.storage_client = storage_client

    app.state.counter_service = CounterService(helper_config=helper_config, db_client=db_client)
    app.state.product_service = ProductService(
        helper_config=helper_config,
        db_client=db_client,
        counter_service=app.state.counter_service,
    )
    app.state.workflow_service = WorkflowService(
        helper_config=helper_config,
        llm_client=llm_client,
        product_service=app.state.product_service,
    )
    app.state.upload_service = UploadService(
        helper_config=helper_config,
        storage_client=storage_client,
        workflow_service=app.state.workflow_service,
        product_service=app.state.product_service,
    )

    # local uploads are served by the API itself
    if isinstance(storage_client, StorageClientLocal) and storage_client.get_mount_path():
        app.mount(
            storage_client.get_mount_path(),
            StaticFiles(directory=storage_client.get_directory()),
            name="files",
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown."""
    logging = setup_logging()
    helper_config = HelperConfig(logger=logging)

    # Initialise clients
    db_client = DBClientManager(helper_config=helper_config).get_client()
    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    storage_client = StorageClientManager(helper_config=helper_config).get_client()
    await db_client.boot()
    await llm_client.boot()
    await storage_client.boot()

    # Health checks
    if not await db_client.do_healthcheck():
        logging.warning("Database %r is not reachable yet.", db_client.get_database_name())
    if not await storage_client.do_healthcheck():
        logging.warning("Storage backend %r is not reachable yet.", storage_client.get_engine_name())

    # Wire up services
    wire_services(app, helper_config, db_client, llm_client, storage_client)
    try:
        await app.state.counter_service.ensure_indexes()
        await app.state.product_service.ensure_indexes()
    except StorageUnavailable as e:
        logging.error("Could not ensure indexes: %s", e.message)

    logging.info("AutoStock API ready.", color="green")
    yield

    # Shutdown
    await storage_client.close()
    await llm_client.close()
    await db_client.close()
    logging.info("AutoStock API shut down.")


##########################################
############ ERROR HANDLING ##############
##########################################

async def handle_autostock_error(request: Request, exc: AutoStockError) -> JSONResponse:
    status_code = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        request.app.state.logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content = {"error": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
    )


##########################################
################# APP ####################
##########################################

def build_app(lifespan: Callable | None = lifespan) -> FastAPI:
    """Create the FastAPI application.

    Args:
        lifespan: Startup/shutdown handler; pass another one to wire
            alternative clients (e.g. in tests).
    """
    app = FastAPI(
        title="AutoStock API",
        description="Stock-photo product pipeline with AI-generated descriptions.",
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AutoStockError, handle_autostock_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.include_router(health_router)
    # fixed /api/products/<name> paths before /api/products/{product_id}
    app.include_router(batch_router)
    app.include_router(prompt_router)
    app.include_router(upload_router)
    app.include_router(product_router)
    return app


app = build_app()


# Server Start
if __name__ == "__main__":
    # start server
    import uvicorn
    port = int(os.getenv("APP_PORT", "8000"))
    setup_logging().info(f"Starting AutoStock API Server v{app_version} on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port)
