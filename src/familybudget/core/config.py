import logging
from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Data Paths
    # Default to a 'data' folder in the project root if not specified
    DATA_DIR: Path = Path("data")

    # Full SQLAlchemy URL (e.g. postgresql+psycopg://...); falls back to SQLite under DATA_DIR
    DATABASE_URL_OVERRIDE: str | None = None

    @property
    def DB_DIR(self) -> Path:
        return self.DATA_DIR / "db"

    @property
    def EXPORTS_DIR(self) -> Path:
        return self.DATA_DIR / "exports"

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        # Ensure db directory exists
        self.DB_DIR.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.DB_DIR}/familybudget.db"

    # Banks offered to teams whose members have not configured their own
    DEFAULT_BANKS: list[str] = ["Banregio", "BBVA"]

    # Budgets
    BUDGET_WARNING_THRESHOLD: Decimal = Decimal("80")

    # Category defaults
    DEFAULT_CATEGORY_ICON: str = "📝"
    DEFAULT_CATEGORY_COLOR: str = "#6366f1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and the web app."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
