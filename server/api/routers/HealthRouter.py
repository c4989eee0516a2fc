from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from server.models.responses import HealthResponse

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness and dependency check; 503 while the database is unreachable."""
    database_ok = await request.app.state.db_client.do_healthcheck()
    storage_ok = await request.app.state.storage_client.do_healthcheck()
    response = HealthResponse(
        status="ok" if database_ok else "degraded",
        version=request.app.version,
        database=database_ok,
        storage=storage_ok,
    )
    return JSONResponse(content=response.model_dump(), status_code=200 if database_ok else 503)
