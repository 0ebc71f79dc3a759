"""Provider configuration read from the admin-editable ``system_settings`` table."""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from src.toolbox.auth.exceptions import ConfigurationError
from src.toolbox.services.database.utils import SupabaseQueryBuilder

logger = logging.getLogger(__name__)

PROVIDER = "zalo"
RESTRICTED_PROVIDER = "zalo:restricted"

SETTINGS_TABLE = "system_settings"
SETTINGS_CATEGORY = "zalo_oauth"
ENABLED_KEY = "enableZaloOAuth"
APP_ID_KEY = "zaloAppId"
APP_SECRET_KEY = "zaloAppSecret"
DEFAULT_CREDITS_KEY = "defaultUserCredits"
DEFAULT_STARTER_CREDITS = 50


class ProviderConfig(BaseModel):
    """Credentials and policy for the Zalo integration."""

    enabled: bool = False
    app_id: str = ""
    app_secret: str = Field(default="", repr=False)
    starter_credits: int = DEFAULT_STARTER_CREDITS

    def require_usable(self) -> "ProviderConfig":
        """
        Fail fast when the integration cannot be used.

        Raises:
            ConfigurationError: If disabled or app id / secret are missing
        """
        if not self.enabled:
            raise ConfigurationError("Zalo OAuth is disabled in system settings")
        if not self.app_id or not self.app_secret:
            raise ConfigurationError(
                f"Zalo OAuth credentials incomplete "
                f"(app_id present: {bool(self.app_id)}, secret present: {bool(self.app_secret)})"
            )
        return self


class ProviderSettingsRepository(ABC):
    """Source of the provider configuration."""

    @abstractmethod
    def load(self) -> ProviderConfig:
        """Return the current provider configuration."""


class SupabaseProviderSettingsRepository(ProviderSettingsRepository):
    """
    Reads provider settings from ``system_settings`` on every call.

    Settings are edited from the admin panel at runtime, so nothing is cached.

    Example:
        >>> repo = SupabaseProviderSettingsRepository(get_query_builder())
        >>> config = repo.load().require_usable()
    """

    def __init__(self, db: SupabaseQueryBuilder):
        self.db = db

    def load(self) -> ProviderConfig:
        try:
            rows = self.db.list_records(
                SETTINGS_TABLE, columns="key,value", filters={"category": SETTINGS_CATEGORY}
            )
            credits_row = self.db.find_one(
                SETTINGS_TABLE, {"key": DEFAULT_CREDITS_KEY}, columns="key,value"
            )
        except Exception as e:
            logger.error(f"Failed to load Zalo OAuth settings: {e}", exc_info=True)
            raise ConfigurationError("Could not read Zalo OAuth settings") from e

        values = {row["key"]: row.get("value") or "" for row in rows}
        config = ProviderConfig(
            enabled=str(values.get(ENABLED_KEY, "")).strip().lower() == "true",
            app_id=str(values.get(APP_ID_KEY, "")).strip(),
            app_secret=str(values.get(APP_SECRET_KEY, "")).strip(),
            starter_credits=_parse_credits(credits_row.get("value") if credits_row else None),
        )

        logger.debug(
            "Zalo OAuth settings loaded",
            extra={
                "enabled": config.enabled,
                "has_app_id": bool(config.app_id),
                "has_app_secret": bool(config.app_secret),
            },
        )
        return config


def _parse_credits(value: str | None) -> int:
    try:
        credits = int(value) if value not in (None, "") else DEFAULT_STARTER_CREDITS
    except (TypeError, ValueError):
        logger.warning(f"Invalid {DEFAULT_CREDITS_KEY} setting {value!r}, using default")
        return DEFAULT_STARTER_CREDITS
    return max(credits, 0)
