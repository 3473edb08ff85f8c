"""BMCalc configuration management.

Loads configuration from environment variables with sensible defaults.
Follows Brazilian locale conventions (BRL currency, dd/mm/yyyy dates).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class IngestionConfig:
    """Price sheet ingestion limits and column inference thresholds."""

    max_file_size: int = 100 * 1024 * 1024  # 100MB
    max_sheets_per_contractor: int = 20
    storage_dir: Path = Path("data/price-sheets")

    # Column inference
    header_scan_rows: int = 25
    numeric_min: Decimal = Decimal("0")
    numeric_max: Decimal = Decimal("1000000")
    header_min_text_length: int = 5


@dataclass
class MatchingConfig:
    """Catalog lookup and learned-match settings."""

    min_description_score: int = 6
    search_limit: int = 50
    suggest_min_score: int = 60
    history_path: Path = Path("data/match-history.json")


@dataclass
class ExtractionConfig:
    """AI gateway used for OCR/extraction of daily reports."""

    base_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    api_key: str | None = None
    model: str = "google/gemini-2.5-flash"
    timeout_seconds: float = 120.0


@dataclass
class LocaleConfig:
    """Currency and formatting defaults for exported bulletins."""

    currency: str = "BRL"
    currency_symbol: str = "R$"
    decimal_separator: str = ","
    thousands_separator: str = "."
    date_format: str = "%d/%m/%Y"


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    log_level: str = "INFO"

    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    locale: LocaleConfig = field(default_factory=LocaleConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: SQLAlchemy async connection string

        Optional (with defaults):
        - LOG_LEVEL
        - MAX_FILE_SIZE_MB, MAX_SHEETS_PER_CONTRACTOR, PRICE_SHEET_DIR
        - HEADER_SCAN_ROWS, NUMERIC_MIN, NUMERIC_MAX, HEADER_MIN_TEXT_LENGTH
        - MIN_DESCRIPTION_SCORE, MATCH_HISTORY_PATH
        - AI_GATEWAY_URL, AI_GATEWAY_API_KEY, AI_MODEL, AI_TIMEOUT_SECONDS

        Raises:
            KeyError: If required environment variables are missing
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./bmcalc.db"
            )

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            db=DBConfig(
                url=database_url,
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            ingestion=IngestionConfig(
                max_file_size=int(os.getenv("MAX_FILE_SIZE_MB", "100")) * 1024 * 1024,
                max_sheets_per_contractor=int(
                    os.getenv("MAX_SHEETS_PER_CONTRACTOR", "20")
                ),
                storage_dir=Path(os.getenv("PRICE_SHEET_DIR", "data/price-sheets")),
                header_scan_rows=int(os.getenv("HEADER_SCAN_ROWS", "25")),
                numeric_min=Decimal(os.getenv("NUMERIC_MIN", "0")),
                numeric_max=Decimal(os.getenv("NUMERIC_MAX", "1000000")),
                header_min_text_length=int(os.getenv("HEADER_MIN_TEXT_LENGTH", "5")),
            ),
            matching=MatchingConfig(
                min_description_score=int(os.getenv("MIN_DESCRIPTION_SCORE", "6")),
                search_limit=int(os.getenv("SEARCH_LIMIT", "50")),
                suggest_min_score=int(os.getenv("SUGGEST_MIN_SCORE", "60")),
                history_path=Path(
                    os.getenv("MATCH_HISTORY_PATH", "data/match-history.json")
                ),
            ),
            extraction=ExtractionConfig(
                base_url=os.getenv(
                    "AI_GATEWAY_URL",
                    "https://ai.gateway.lovable.dev/v1/chat/completions",
                ),
                api_key=os.getenv("AI_GATEWAY_API_KEY"),
                model=os.getenv("AI_MODEL", "google/gemini-2.5-flash"),
                timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "120")),
            ),
            locale=LocaleConfig(
                currency=os.getenv("DEFAULT_CURRENCY", "BRL"),
                date_format=os.getenv("DATE_FORMAT", "%d/%m/%Y"),
            ),
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (used by tests and the CLI)."""
    global _config
    _config = None
