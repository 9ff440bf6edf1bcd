import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .application.ports.clock import Clock
from .application.ports.notifier import Notifier
from .application.ports.rate_limiter import RateLimiter
from .application.ports.user_directory import UserDirectory
from .application.services.auth_service import AuthService
from .application.services.token_service import TokenService
from .application.services.verification_code_service import VerificationCodeService
from .core.config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import AuthError, ConfigurationError, auth_error_handler, http_exception_handler
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.clock.system_clock import SystemClock
from .infrastructure.notify.log_notifier import LoggingNotifier
from .infrastructure.notify.twilio_notifier import TwilioSmsNotifier
from .infrastructure.persistence.sqlalchemy.repositories.user_directory_sql import SqlUserDirectory
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.verification.memory_store import InMemoryVerificationStore
from .infrastructure.verification.sweeper import ExpiredCodeSweeper
from .routers import auth_router

logger = logging.getLogger(__name__)


def build_notifier(settings: Settings) -> Notifier:
    provider = settings.SMS_PROVIDER.lower()
    if provider == "twilio":
        return TwilioSmsNotifier(settings)
    if provider == "log":
        logger.warning("SMS_PROVIDER=log: verification codes are written to the log, not delivered")
        return LoggingNotifier()
    raise ConfigurationError(f"Unknown SMS_PROVIDER: {settings.SMS_PROVIDER}")


def create_app(
    settings: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
    user_directory: Optional[UserDirectory] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the API and its service graph.

    Every collaborator is constructed here, so missing token settings abort
    startup instead of failing on the first request. Run with
    ``uvicorn patrol_auth.main:create_app --factory``.
    """
    if settings is None:
        # Load environment variables as early as possible
        load_dotenv()
        settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )

    settings.require_token_settings()
    clock = clock or SystemClock()

    tokens = TokenService(
        secret_key=settings.JWT_SECRET_KEY,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
        clock=clock,
        session_ttl=timedelta(minutes=settings.SESSION_TTL_MINUTES),
        algorithm=settings.JWT_ALGORITHM,
    )
    verification = VerificationCodeService(
        store=InMemoryVerificationStore(),
        clock=clock,
        code_length=settings.VERIFICATION_CODE_LENGTH,
        code_ttl=timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
        single_use=settings.VERIFICATION_CODE_SINGLE_USE,
    )

    engine = None
    if user_directory is None:
        engine = build_engine(settings)
        user_directory = SqlUserDirectory(engine)

    auth_service = AuthService(
        verification=verification,
        tokens=tokens,
        user_directory=user_directory,
        notifier=notifier or build_notifier(settings),
        clock=clock,
        audit_logger=StdAuditLogger(clock),
    )
    sweeper = ExpiredCodeSweeper(verification, interval_seconds=settings.CODE_SWEEP_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.APP_NAME}...")
        if engine is not None:
            create_db_and_tables(engine)
            logger.info("Database initialized successfully")
        sweeper.start()
        yield
        # Shutdown
        sweeper.stop()
        logger.info(f"Shutting down {settings.APP_NAME}...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )
    app.state.settings = settings
    app.state.auth_service = auth_service
    app.state.rate_limiter = rate_limiter or InMemoryRateLimiter()
    app.state.sweeper = sweeper

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": clock.now().isoformat(),
            "verification": {
                "pending_codes": len(verification.store),
                "sweeper_running": sweeper.running,
            },
            "auth": {
                "jwt_algorithm": settings.JWT_ALGORITHM,
                "session_ttl_minutes": settings.SESSION_TTL_MINUTES,
            },
        }

    return app


# ------------------------
# Run with correct PORT in local/production
# ------------------------
if __name__ == "__main__":
    import uvicorn
    load_dotenv()
    _settings = get_settings()
    uvicorn.run(
        "patrol_auth.main:create_app",
        factory=True,
        host=_settings.HOST,
        port=_settings.PORT,
        workers=1,  # verification codes live in process memory
        log_level=_settings.LOG_LEVEL.lower()
    )
