"""
Main FastAPI application for the image generation backend.
Serves health, model catalog, generation requests, credits and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imagegen.core.config import settings
from imagegen.core.errors import ServiceError, ValidationError
from imagegen.core.logging import configure_logging
from imagegen.api.routes import credits, generation, health, models
from imagegen.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Image Generation API",
    description="Generation requests billed against a credit ledger",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list or ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def access_log(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or str(uuid4())
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[settings.request_id_header] = request_id
        return response
    finally:
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    error = ValidationError(errors=errors)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra={"path": request.url.path, "method": request.method})
    content = {"success": False, "reason": "internal_error", "message": "Internal server error"}
    if settings.is_development:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(models.router)
app.include_router(generation.router)
app.include_router(credits.router)
app.include_router(metrics_router)
