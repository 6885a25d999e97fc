from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings. Every field reads ``ARENA_<NAME>``."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="ARENA_", extra="ignore")

    # ═══════════════════════════════════════════════════
    # Storage
    # ═══════════════════════════════════════════════════
    USE_IN_MEMORY_DB: bool = True  # False → SQL backend at DATABASE_URL
    DATABASE_URL: str = "sqlite:///./tcg_arena.sqlite3"
    DB_ECHO: bool = False

    # ═══════════════════════════════════════════════════
    # Service
    # ═══════════════════════════════════════════════════
    APP_NAME: str = "TCG Arena Battle Rooms"
    VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ═══════════════════════════════════════════════════
    # Battle Room Rules
    # ═══════════════════════════════════════════════════
    REQUIRE_DECKS: bool = True  # both players need a non-empty deck to start
    MAX_ROOM_NAME_LENGTH: int = 60
    MAX_SECRET_LENGTH: int = 64
    DEFAULT_PAGE_SIZE: int = 50

    # ═══════════════════════════════════════════════════
    # CORS (arena frontend)
    # ═══════════════════════════════════════════════════
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:3001"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: list[str] = ["*"]
    CORS_HEADERS: list[str] = ["*"]

    @property
    def db_mode(self) -> str:
        return "in-memory" if self.USE_IN_MEMORY_DB else "sql"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process-wide Settings, built on first use.

    Tests that need other values set ``ARENA_*`` env vars before the first
    call, or override the FastAPI dependency.
    """
    global _settings
    if not _settings:
        _settings = Settings()
    return _settings
