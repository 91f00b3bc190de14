from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Backend endpoints
    API_BASE_URL: str = "http://localhost:8787/api"
    OAUTH_BASE_URL: str = "https://oauth.tminus.ink"
    REQUEST_TIMEOUT: float = 30.0

    # =================================================================
    # RETRY SETTINGS - transient errors only
    # =================================================================
    MAX_RETRIES: int = 3
    BASE_DELAY_MS: int = 1000

    # =================================================================
    # POLLING SETTINGS
    # =================================================================
    SESSION_POLL_INTERVAL_MS: int = 3000  # cross-tab session refresh
    SYNC_POLL_INTERVAL_MS: int = 2000
    SYNC_POLL_TIMEOUT_MS: int = 60_000

    # Reserved namespace for client-side placeholder ids
    TEMP_ID_PREFIX: str = "temp-"

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
