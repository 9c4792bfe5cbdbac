from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from uniconnect import __version__
from uniconnect.api.router import api_router, socket_router
from uniconnect.config import settings
from uniconnect.context import AppContext
from uniconnect.database import Database
from uniconnect.exceptions import UniConnectError
from uniconnect.logging_config import logger
from uniconnect.middleware import RequestLoggingMiddleware
from uniconnect.rate_limiter import limiter, rate_limit_exceeded_handler


def validate_config() -> None:
    """Fail fast on an unusable configuration in production"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        if settings.is_production:
            errors.append("JWT_SECRET_KEY is not set or using default value")
        else:
            warnings.append("JWT_SECRET_KEY is using the default value")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")
    validate_config()

    owns_context = app.state.context is None
    if owns_context:
        app.state.context = AppContext.build(Database.connect(settings.DATABASE_URL, settings.DATABASE_NAME))
    app.state.context.database.ensure_indexes()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    if owns_context:
        app.state.context.close()
        app.state.context = None


# --------- Exception handlers ---------

async def uniconnect_error_handler(request: Request, exc: UniConnectError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": "Validation failed", "details": {"errors": errors}},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}},
        headers=getattr(exc, "headers", None),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "code": "INTERNAL_ERROR",
            "message": str(exc) if settings.DEBUG else "Server error",
            "details": {},
        },
    )


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the application.

    When `context` is given it is used as is (tests pass one over an
    in-memory database); otherwise the lifespan connects to MongoDB.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Project collaboration platform for university students",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(UniConnectError, uniconnect_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Last added runs first
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    @app.get("/")
    def read_root():
        return {"message": f"{settings.APP_NAME} running"}

    @app.get("/health")
    def health_check(request: Request):
        response = {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "database": "Not Connected",
        }
        ctx: Optional[AppContext] = request.app.state.context
        if ctx is not None:
            try:
                ctx.database.db.command("ping")
                response["database"] = "Connected"
            except Exception as e:
                logger.warning(f"Health check database ping failed: {e}")
                response["status"] = "degraded"
                response["database"] = f"Error: {str(e)[:80]}"
        return response

    app.include_router(api_router)
    app.include_router(socket_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("uniconnect.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
