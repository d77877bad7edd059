import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401 - register tables with Base
from .database import Base, engine
from .domain.catalog.router import router as catalog_router
from .domain.proposals import admin_router as proposals_admin_router
from .domain.proposals import public_router as proposals_router
from .domain.proposals import webhooks_router as stripe_webhooks_router
from .domain.proposals.errors import ProposalError
from .domain.proposals.service import build_proposal_clients
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(
            f"Redis connection failed - public accept/checkout will be refused (fail-closed): {e}"
        )

    app.state.proposal_clients = build_proposal_clients()
    logger.info("Proposal clients initialized")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="TreeShop Proposals API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ProposalError)
async def proposal_exception_handler(request: Request, exc: ProposalError):
    """Domain errors carry their own status and a machine-readable code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.code}: {exc.detail}")

    content = {"detail": exc.detail, "code": exc.code}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    # The rejected input is left out: it may be NaN, which JSON cannot carry
    errors = [
        {"loc": error.get("loc"), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors)},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    duration_ms = (time.time() - start_time) * 1000
    logger.debug(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(
        SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"]
    )
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://treeai.us,https://www.treeai.us,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(catalog_router)
app.include_router(proposals_admin_router)
app.include_router(proposals_router)
app.include_router(stripe_webhooks_router)


@app.get("/")
def root():
    return {"message": "TreeShop Proposals API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
