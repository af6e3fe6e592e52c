from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from meditrack.config import Settings, get_settings
from meditrack.db.facade import Database
from meditrack.db.pool import ConnectionPool
from meditrack.exceptions import AppError, InfrastructureError, TokenError, Unauthorized, ValidationError
from meditrack.rate_limit import limiter
from meditrack.routers import auth as auth_router
from meditrack.security import PasswordHasher, TokenService
from meditrack.services.auth_service import AuthService
from meditrack.utils.logger import configure_logging, get_logger

logger = get_logger("main")


def create_app(settings: Settings | None = None, pool: ConnectionPool | None = None) -> FastAPI:
    """Build the application with explicitly constructed components.

    The pool, hasher, token service and auth service live on ``app.state``;
    nothing is looked up as process-wide global state.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    pool = pool or ConnectionPool(settings)
    db = Database(pool)
    hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    tokens = TokenService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.uses_dev_secret and settings.APP_ENV != "dev":
            logger.warning("JWT_SECRET is the development default; set a real secret")
        await pool.initialize()
        if settings.DB_CREATE_SCHEMA:
            await pool.create_schema()
        logger.info(f"{settings.APP_NAME} started (env={settings.APP_ENV})")
        yield
        # Shutdown
        await pool.close()

    app = FastAPI(
        title="MediTrack Staff Auth API",
        debug=settings.APP_DEBUG,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.pool = pool
    app.state.db = db
    app.state.hasher = hasher
    app.state.tokens = tokens
    app.state.auth_service = AuthService(db, hasher, tokens, settings)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["http://localhost:3000", "http://localhost:8000"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(auth_router.router)
    _register_error_handlers(app)

    @app.get("/api/health")
    async def health_check(request: Request):
        db_ok = await request.app.state.pool.ping()
        return {
            "status": "healthy" if db_ok else "degraded",
            "service": settings.APP_NAME,
            "database": db_ok,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, InfrastructureError):
            # Detail stays in the server log
            logger.error(f"{exc.kind.value}: {exc.message} - Path: {request.url.path}", exc_info=exc)
            message = exc.public_message
            code = "internal_error"
        else:
            logger.warning(f"{exc.kind.value} ({exc.status_code}): {exc.message} - Path: {request.url.path}")
            message = exc.message
            code = exc.kind.value

        content = {"detail": message, "code": code, "status_code": exc.status_code}
        if isinstance(exc, ValidationError) and exc.reasons:
            content["reasons"] = [reason.value for reason in exc.reasons]
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, (Unauthorized, TokenError)) else None
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "status_code": exc.status_code}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_errors(exc)
        logger.warning(f"Validation error: {errors} - Path: {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": errors, "code": "validation", "status_code": 400}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "status_code": 500}
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    # input values may contain passwords; report locations and messages only
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]


app = create_app()
