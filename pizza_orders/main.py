"""
FastAPI Application Entry Point

Pizza Orders API: order placement with transactional stock
reconciliation, order history, seller-side status management and
post-delivery reviews.

Endpoints:
    - POST  /api/orders: Place an order
    - GET   /api/orders/user/{user_id}: Order history of a user
    - GET   /api/orders/{order_id}: Order details
    - PATCH /api/orders/{order_id}/status: Seller status update
    - GET   /api/seller/{seller_id}/orders: Orders containing a seller's products
    - POST  /api/reviews: Review a delivered order
    - GET   /api/reviews/user/{user_id}: Reviews written by a user
    - PUT   /api/reviews/{review_id}: Edit one's own review
    - GET   /health: System health check

Identity comes from the auth gateway in the ``X-User-Id`` header.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

import redis
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from pizza_orders.core.config import get_settings, setup_logging
from pizza_orders.database import engine, get_db, init_db
from pizza_orders.exceptions import OrderError
from pizza_orders.schemas import (
    ErrorResponse,
    HealthResponse,
    OrderCreateResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderStatusUpdate,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
)
from pizza_orders.services import reviews as review_service
from pizza_orders.services.orders import (
    create_order,
    get_order_by_id,
    get_orders_for_seller,
    get_orders_for_user,
    parse_reference,
    project_order,
    update_order_status,
)
from pizza_orders.tasks import enqueue_order_export

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Strict status transitions: {settings.strict_status_transitions}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Pizza ordering backend. Orders are validated, reconciled against "
        "live stock and committed atomically with their stock decrements."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Mobile client
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_identity(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍕 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify database and Redis are reachable."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if db_status == "healthy" and redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    status_code=201,
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order",
)
async def place_order(
    payload: Any = Body(None),
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> OrderCreateResponse:
    """
    Place an order from the client's cart.

    The raw body is validated field by field so every problem is
    reported at once; see ``pizza_orders.services.orders.validator``.
    """
    order = await create_order(db, payload, acting_user_id=x_user_id)

    if get_settings().export_orders:
        enqueue_order_export(order)

    return OrderCreateResponse(order=project_order(order))


@app.get(
    "/api/orders/user/{user_id}",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Order History",
)
async def list_user_orders(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """All orders of a user, newest first."""
    return await get_orders_for_user(db, user_id)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderDetailResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderDetailResponse:
    """Get a specific order by ID."""
    return OrderDetailResponse(order=await get_order_by_id(db, order_id))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderDetailResponse,
    responses=ERROR_RESPONSES,
    tags=["Seller"],
    summary="Update Order Status",
)
async def change_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> OrderDetailResponse:
    """Seller-side status change, limited to orders with the seller's products."""
    seller_id = require_identity(x_user_id)
    order = await update_order_status(db, order_id, body.status, seller_id)
    return OrderDetailResponse(order=project_order(order))


@app.get(
    "/api/seller/{seller_id}/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Seller"],
)
async def list_seller_orders(
    seller_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Orders containing at least one of the seller's products."""
    return await get_orders_for_seller(db, seller_id)


# =============================================================================
# REVIEW ENDPOINTS
# =============================================================================

@app.post(
    "/api/reviews",
    status_code=201,
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def post_review(
    body: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> ReviewResponse:
    """Review a delivered order (one review per order)."""
    if x_user_id is not None and parse_reference(x_user_id, "userId") != str(body.user_id):
        raise HTTPException(status_code=403, detail="Cannot review on behalf of another user")
    review = await review_service.create_review(db, body)
    return ReviewResponse.model_validate(review)


@app.get(
    "/api/reviews/user/{user_id}",
    response_model=ReviewListResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def list_user_reviews(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> ReviewListResponse:
    reviews = await review_service.get_reviews_for_user(db, user_id)
    return ReviewListResponse(
        count=len(reviews),
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
    )


@app.put(
    "/api/reviews/{review_id}",
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def edit_review(
    review_id: str,
    body: ReviewUpdate,
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> ReviewResponse:
    user_id = require_identity(x_user_id)
    review = await review_service.update_review(db, review_id, user_id, body)
    return ReviewResponse.model_validate(review)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    """Structured body for every workflow failure."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report schema errors in the same shape as order validation."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
