from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ---------------------------
    # API / Project
    # ---------------------------
    PROJECT_NAME: str = "Event Registry"
    CORS_ORIGINS: list[str] = ["*"]

    # ---------------------------
    # Storage
    # ---------------------------
    DATABASE_URL: str = "sqlite:///./event_registry.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # ---------------------------
    # Logging
    # ---------------------------
    LOG_LEVEL: str = "INFO"

    # ---------------------------
    # Claim allocation
    # ---------------------------
    # Lock TTL in seconds; a crashed worker frees the material after this.
    CLAIM_LOCK_TIMEOUT: int = 10
    # How long a claimant waits for another claimant on the same material.
    CLAIM_LOCK_BLOCKING_TIMEOUT: float = 5
    CLAIM_MAX_ATTEMPTS: int = 3


settings = Settings()
