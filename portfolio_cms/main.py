"""
FastAPI application entry point.
Main application instance with middleware and route configuration.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import asyncio

from portfolio_cms.config import settings
from portfolio_cms.database import init_db, close_db
from portfolio_cms.dependencies import ContentContext, build_context
from portfolio_cms.routes import auth, cms, public, realtime
from portfolio_cms.services.blob_storage import InMemoryBlobStorage
from portfolio_cms.services.content_store import SITE_SETTINGS
from portfolio_cms.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _uses_database(context: ContentContext) -> bool:
    return bool(context.config.DATABASE_URL) and not context.config.USE_IN_MEMORY_BACKENDS


def _lifespan(context: ContentContext):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Connect to the database, then mount the public bindings so their
        snapshots are loaded and kept current. Admin bindings mount on the
        first request the session guard allows. The app starts even if the
        database is down.
        """
        logger.info(f"CORS allowed origins: {context.config.CORS_ORIGINS}")

        if _uses_database(context):
            try:
                await init_db()
                logger.info("Database connection established successfully")
            except Exception as e:
                logger.error(
                    f"Failed to initialize database on startup: {str(e)}\n"
                    f"The application will continue to run with empty snapshots until the database is reachable."
                )
        else:
            logger.info("DATABASE_URL not configured or in-memory backends requested - using in-memory store")

        await context.mount_all()
        try:
            yield
        finally:
            await context.unmount_all()
            if _uses_database(context):
                try:
                    await close_db()
                except Exception as e:
                    # Cancellation during shutdown is expected
                    if not isinstance(e, (KeyboardInterrupt, asyncio.CancelledError)):
                        logger.warning(f"Error during database shutdown: {str(e)}")

    return lifespan


def create_app(context: Optional[ContentContext] = None) -> FastAPI:
    """
    Build the application around a content context.
    Tests pass their own context with in-memory backends.
    """
    context = context or build_context(settings)

    app = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version=settings.API_VERSION,
        lifespan=_lifespan(context),
    )
    app.state.context = context
    limiter.enabled = context.config.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Session cookies need explicit origins; wildcard origins cannot carry credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        max_age=3600,  # Cache preflight requests for 1 hour
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with its response status."""
        method = request.method
        path = request.url.path
        logger.debug(f"Incoming {method} request to {path} from origin: {request.headers.get('origin', 'No origin header')}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Error processing {method} {path}: {str(e)}\n"
                f"  Error type: {type(e).__name__}",
                exc_info=True
            )
            raise
        logger.info(f"Response status: {response.status_code} for {method} {path}")
        return response

    app.include_router(public.router)
    app.include_router(auth.router)
    app.include_router(cms.router)
    app.include_router(realtime.router)

    _register_exception_handlers(app)
    _register_health_routes(app, context)
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (303, 400, 401, 404, ...) with a JSON body."""
        log = logger.info if exc.status_code < 400 else logger.error
        log(
            f"HTTPException on {request.method} {request.url.path}:\n"
            f"  Status: {exc.status_code}\n"
            f"  Detail: {exc.detail}"
        )

        # Handle both string and dict detail formats
        if isinstance(exc.detail, dict):
            content = exc.detail
        else:
            content = {"error": exc.detail, "detail": str(exc.detail)}

        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.error(
            f"Validation error on {request.method} {request.url.path}:\n"
            f"  Errors: {exc.errors()}"
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Validation error",
                "detail": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                    for error in exc.errors()
                ]
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}:\n"
            f"  Error: {str(exc)}\n"
            f"  Error type: {type(exc).__name__}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred"
            }
        )


def _register_health_routes(app: FastAPI, context: ContentContext) -> None:
    @app.get("/")
    async def root():
        """Root endpoint - API health check."""
        return {
            "message": settings.API_TITLE,
            "status": "healthy",
            "version": settings.API_VERSION
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/health/store")
    async def health_check_store():
        """
        Content store health check endpoint.
        Runs a cheap count against the store and reports the backend in use.
        """
        backend = "postgres" if _uses_database(context) else "in_memory"
        result = await context.store.count(SITE_SETTINGS)
        if result.ok:
            return {"store": backend, "status": "healthy"}

        logger.error(f"Content store health check failed: {result.error}")
        return {
            "store": backend,
            "status": "unhealthy",
            "error": "Content store unavailable"
        }

    @app.get("/health/storage")
    async def health_check_storage():
        """
        Blob storage health check endpoint.
        Reports whether Cloudinary or the in-memory fallback is in use.
        """
        if isinstance(context.blobs, InMemoryBlobStorage):
            return {
                "storage": "in_memory",
                "status": "warning",
                "message": "Cloudinary credentials not set; uploads are kept in memory"
            }
        return {
            "storage": "cloudinary",
            "status": "healthy",
            "cloud_name": context.config.CLOUDINARY_CLOUD_NAME
        }


app = create_app()
