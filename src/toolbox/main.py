"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.toolbox.auth import SessionEstablisher, set_session_establisher
from src.toolbox.config import settings
from src.toolbox.federation import FederationService, set_federation_service
from src.toolbox.federation import router as federation_router
from src.toolbox.federation.accounts import AccountResolver, SupabaseAccountRepository
from src.toolbox.federation.identity import IdentityFetcher
from src.toolbox.federation.provider import SupabaseProviderSettingsRepository
from src.toolbox.federation.responder import CompletionResponder
from src.toolbox.federation.store import build_pending_store, run_sweeper
from src.toolbox.federation.token_client import TokenExchangeClient
from src.toolbox.services import PostHogService
from src.toolbox.services.database import get_query_builder
from src.toolbox.services.rate_limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup
    try:
        db = get_query_builder()
        store = build_pending_store(settings)

        sessions = SessionEstablisher(
            db=db,
            secret_key=settings.session_secret_key,
            issuer=settings.session_issuer,
            ttl_seconds=settings.session_ttl_seconds,
        )
        service = FederationService(
            settings=settings,
            provider_settings=SupabaseProviderSettingsRepository(db),
            store=store,
            token_client=TokenExchangeClient(
                settings.zalo_token_url, timeout_seconds=settings.oauth_http_timeout_seconds
            ),
            identity_fetcher=IdentityFetcher(
                settings.zalo_profile_url,
                settings.zalo_profile_fields,
                restricted_error_codes=settings.zalo_restricted_error_codes,
                timeout_seconds=settings.oauth_http_timeout_seconds,
            ),
            resolver=AccountResolver(SupabaseAccountRepository(db)),
            sessions=sessions,
            responder=CompletionResponder(
                success_path=settings.oauth_success_redirect_path,
                failure_path=settings.oauth_failure_redirect_path,
                redirect_delay_ms=settings.oauth_no_opener_redirect_delay_ms,
            ),
            analytics=PostHogService(),
        )

        set_session_establisher(sessions)
        set_federation_service(service)

        logger.info(
            "Federation service initialized",
            extra={
                "store": type(store).__name__,
                "state_ttl": settings.oauth_state_ttl_seconds,
                "http_timeout": settings.oauth_http_timeout_seconds,
            },
        )
    except Exception as e:
        logger.error(
            f"Failed to initialize federation service: {e}",
            exc_info=True,
            extra={"error_type": "federation_init_failed"},
        )
        raise

    sweeper = asyncio.create_task(
        run_sweeper(store, settings.oauth_state_sweep_interval_seconds)
    )

    yield

    # Shutdown
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper

    try:
        await service.close()
        logger.info("Federation service cleanup completed")
    except Exception as e:
        logger.error(f"Error during federation service cleanup: {e}", exc_info=True)
    finally:
        set_federation_service(None)
        set_session_establisher(None)


app = FastAPI(
    title="Toolbox API",
    description="Accounts and federated login for the Toolbox platform",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = settings.cors_origins.split(",")
logger.info(f"Origins : {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)

app.include_router(federation_router)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
