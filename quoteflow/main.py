import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_accounting,  # noqa: F401
    models_billing,  # noqa: F401
)
from .config import CSRF_ENABLED, RATE_LIMIT_ENABLED, SECURITY_HEADERS_ENABLED
from .csrf import CSRF_COOKIE_NAME, CSRFMiddleware, generate_csrf_token, set_csrf_cookie
from .database import Base, SessionLocal, engine
from .domain.accounting.router import router as accounting_router
from .domain.billing.plans import seed_subscription_plans
from .domain.billing.router import router as subscriptions_router
from .domain.billing.router import webhooks_router
from .domain.companies.router import invitations_router
from .domain.companies.router import router as companies_router
from .domain.contracts.router import router as contracts_router
from .domain.cron.router import router as cron_router
from .domain.customers.router import router as customers_router
from .domain.exchange_rates.router import router as exchange_rates_router
from .domain.observability.router import router as observability_router
from .domain.ocr.router import router as ocr_router
from .domain.orders.router import router as orders_router
from .domain.payments.router import router as payments_router
from .domain.products.router import router as products_router
from .domain.quotations.router import router as quotations_router
from .domain.rbac.router import router as rbac_router
from .domain.shipments.router import router as shipments_router
from .error_aggregator import ErrorAggregator
from .permissions import seed_rbac
from .rate_limiter import RateLimitMiddleware
from .responses import error_response
from .security_headers import SecurityHeadersMiddleware
from .utils.pii_redactor import install_pii_filter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
install_pii_filter()
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    db = SessionLocal()
    try:
        seed_rbac(db)
        seed_subscription_plans(db)
    finally:
        db.close()

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="QuoteFlow API", version="1.0.0", lifespan=lifespan)


# ==========================================
# Error handling
# ==========================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Services raise HTTPException with a string detail or {"message", "code"}"""
    if isinstance(exc.detail, dict):
        return error_response(
            exc.status_code,
            exc.detail.get("message") or "Request failed",
            code=exc.detail.get("code"),
            details=exc.detail.get("details"),
            headers=getattr(exc, "headers", None),
        )
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return error_response(400, "Invalid request", details=jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} - Error: {exc}", exc_info=exc)
    db = SessionLocal()
    try:
        ErrorAggregator(db).record_error(exc, path=request.url.path, context={"method": request.method})
    except Exception as record_error:
        logger.error(f"❌ Failed to record error aggregate: {record_error}")
    finally:
        db.close()
    return error_response(500, "Internal server error")


# ==========================================
# Middleware
# ==========================================

if SECURITY_HEADERS_ENABLED:
    app.add_middleware(
        SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"]
    )
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

if CSRF_ENABLED:
    app.add_middleware(CSRFMiddleware)
    logger.info("CSRF protection enabled")
else:
    logger.info("CSRF protection disabled")

if RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)
    logger.info("Rate limiting enabled")

# For production with credentials (cookies), we need specific origins
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(companies_router)
app.include_router(invitations_router)
app.include_router(rbac_router)
app.include_router(customers_router)
app.include_router(products_router)
app.include_router(quotations_router)
app.include_router(orders_router)
app.include_router(shipments_router)
app.include_router(contracts_router)
app.include_router(payments_router)
app.include_router(exchange_rates_router)
app.include_router(accounting_router)
app.include_router(subscriptions_router)
app.include_router(webhooks_router)
app.include_router(cron_router)
app.include_router(ocr_router)
app.include_router(observability_router)


@app.get("/")
def root():
    return {"message": "QuoteFlow API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/csrf-token")
async def get_csrf_token(request: Request, response: Response):
    """
    Get a CSRF token for the frontend.
    The token is also set as a cookie; send it back in the X-CSRF-Token header.
    """
    existing_token = request.cookies.get(CSRF_COOKIE_NAME)
    if existing_token:
        return {"csrf_token": existing_token}

    new_token = generate_csrf_token()
    set_csrf_cookie(response, new_token)
    return {"csrf_token": new_token}
