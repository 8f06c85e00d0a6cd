"""
Main FastAPI application for the Storefront payments API.
Serves payments, licenses, cron trigger, admin back-office, health and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.errors import AppError
from storefront.core.logging import configure_logging
from storefront.api.routes import admin, cron, health, licenses, payments
from storefront.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger("storefront.api")


app = FastAPI(
    title="Storefront Payments API",
    description="Order lifecycle, licenses and admin back-office",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_log(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or str(uuid4())
    start = time.time()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": int((time.time() - start) * 1000),
        },
    )
    return response


# Errors -> {success: false, error}
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("app_error", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", extra={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(payments.router, prefix=settings.api_prefix)
app.include_router(licenses.router, prefix=settings.api_prefix)
app.include_router(cron.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)
app.include_router(metrics_router)
