import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import create_db_and_tables
from app.exceptions import StoreError
from app.logging_config import setup_logging
from app.routes import (
    admin_discounts,
    admin_orders,
    design_files,
    discounts,
    health,
    orders,
    payments,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()
    yield


app = FastAPI(title=f"{settings.store_name} API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.reason}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(discounts.router, prefix="/discounts", tags=["Discounts"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(design_files.router, prefix="/design-files", tags=["Downloads"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(admin_discounts.router, prefix="/admin/discount-codes", tags=["Admin Discounts"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "order_endpoints": [
            "/orders", "/orders/{order_id}", "/orders/number/{order_number}",
            "/orders/{order_id}/cancel", "/orders/{order_id}/complete-free"
        ],
        "discount_endpoints": [
            "/discounts/validate"
        ],
        "payment_endpoints": [
            "/payments/{order_id}/intent", "/payments/{order_id}/capture",
            "/payments/{order_id}"
        ],
        "download_endpoints": [
            "/design-files/{design_file_id}/download"
        ],
        "admin_endpoints": [
            "/admin/orders", "/admin/orders/{order_id}",
            "/admin/discount-codes/{code}/stats"
        ],
    }
