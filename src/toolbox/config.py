"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    debug: bool = False
    cors_origins: str = "http://localhost:5000,http://localhost:5173"
    rate_limit_enabled: bool = True

    # Supabase Configuration
    supabase_url: str = "https://test.supabase.co"
    supabase_anon_key: str = "test-anon-key"
    supabase_service_role_key: str = "test-service-role-key"

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    # Zalo provider endpoints (credentials live in system_settings, not here)
    zalo_authorize_url: str = "https://oauth.zaloapp.com/v4/permission"
    zalo_token_url: str = "https://oauth.zaloapp.com/v4/access_token"
    zalo_profile_url: str = "https://graph.zalo.me/v2.0/me"
    zalo_profile_fields: str = "id,name,picture,gender,birthday"
    # Error codes the Graph API returns when it withholds the profile (e.g. non-VN server IP)
    zalo_restricted_error_codes: list[int] = [-501]

    # OAuth flow
    oauth_state_ttl_seconds: int = 600  # 10 minutes
    oauth_state_sweep_interval_seconds: int = 60
    oauth_http_timeout_seconds: float = 5.0
    oauth_redirect_base_url: str | None = None  # Overrides the host-derived redirect URI
    oauth_success_redirect_path: str = "/dashboard"
    oauth_failure_redirect_path: str = "/auth?error=oauth_failed"
    oauth_no_opener_redirect_delay_ms: int = 2000

    # Pending-authorization storage (in-process when unset)
    redis_url: str | None = None

    # Session cookie
    session_secret_key: str = "change-me-session-secret"
    session_issuer: str = "toolbox"
    session_cookie_name: str = "toolbox_session"
    session_ttl_seconds: int = 604800  # 7 days
    session_cookie_secure: bool = True


settings = Settings()
