import logging
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from starlette.middleware.base import BaseHTTPMiddleware
from loan_tracker.config import Settings
from loan_tracker.database import Base, create_db_engine, create_session_factory
from loan_tracker.errors import LoanTrackerError, RateLimited, StoreError
from loan_tracker.routes import auth, loans
from loan_tracker.services.auth import CredentialVerifier, PasswordHasher, TokenService
from loan_tracker.services.blob_store import BlobStore, LocalBlobStore
from loan_tracker.services.rate_limit import LoginThrottle, RateLimitConfig
from loan_tracker import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests."""
    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("Authorization")
        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip} - Auth: {'Present' if auth_header else 'Missing'}")
        response = await call_next(request)
        return response


def _error_response(exc: LoanTrackerError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LoanTrackerError)
    async def handle_domain_error(request: Request, exc: LoanTrackerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.category}")
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = {}
        for error in exc.errors():
            loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path", "form")]
            fields.setdefault(".".join(loc) or "body", []).append(error["msg"])
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": {"category": "validation_error", "message": "Invalid data", "fields": fields}},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return _error_response(StoreError())


def create_app(settings: Optional[Settings] = None, blob_store: Optional[BlobStore] = None) -> FastAPI:
    """Build the application and its collaborators from ``settings``."""
    settings = settings or Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    engine = create_db_engine(settings.database_url, echo=settings.db_echo)
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="Loan Tracker API",
        description="Track items lent to other people, their due dates and return state",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.password_hasher = hasher
    app.state.credential_verifier = CredentialVerifier(hasher)
    app.state.token_service = TokenService(settings)
    app.state.login_throttle = LoginThrottle(
        RateLimitConfig(
            max_attempts=settings.login_max_attempts,
            window_seconds=settings.login_window_seconds,
            block_seconds=settings.login_block_seconds,
        )
    )
    if blob_store is None:
        blob_store = LocalBlobStore(settings.upload_dir, settings.upload_url_prefix)
        if settings.serve_uploads:
            blob_store.ensure_dir()
            app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")
    app.state.blob_store = blob_store

    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router)
    app.include_router(loans.router)

    @app.get("/")
    async def root():
        return {"message": "Loan Tracker API", "version": "1.0.0"}

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy"}

    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
    )
