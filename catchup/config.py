from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # =================================================================
    # SESSION ENGINE SETTINGS
    # =================================================================
    SESSION_TTL_SECONDS: float = 24 * 60 * 60  # 24 hours
    SESSION_SWEEP_INTERVAL_SECONDS: float = 60 * 60  # hourly safety net
    MAX_PARTICIPANTS: int = 20  # soft cap, informational only
    TAG_CATEGORIES: list[str] = ["time", "location", "food", "activity"]

    # =================================================================
    # HTTP / TRANSPORT SETTINGS
    # =================================================================
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: list[str] = []
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # KEYWORD CLASSIFIER SETTINGS
    # =================================================================
    CLASSIFIER_BACKEND: str = "rules"  # "rules" or "openai"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    CLASSIFIER_TIMEOUT_SECONDS: float = 10.0
    CLASSIFIER_CONFIDENCE_THRESHOLD: float = 0.7

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_store_config(self) -> dict:
        """
        Get session store constructor arguments.
        Tests build stores directly with short TTLs instead.
        """
        return {
            "ttl_seconds": self.SESSION_TTL_SECONDS,
            "max_participants": self.MAX_PARTICIPANTS,
            "categories": tuple(self.TAG_CATEGORIES),
        }

    def get_cors_origins(self) -> list[str]:
        """Allowed browser origins, falling back to the frontend URL."""
        if self.ALLOWED_ORIGINS:
            return list(self.ALLOWED_ORIGINS)

        origins = [self.FRONTEND_URL.rstrip("/")]
        if self.environment == "development":
            # Vite dev server
            origins.append("http://localhost:5173")
        return origins


settings = Settings()
