"""Application settings and configuration."""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


@dataclass
class ServiceConfig:
    """Query Service (REST API) connection settings."""

    base_url: str = field(
        default_factory=lambda: os.getenv("AUTOIMMUNE_API_URL", "http://localhost:5000")
    )
    api_token: Optional[str] = field(default_factory=lambda: os.getenv("AUTOIMMUNE_API_TOKEN"))
    timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("AUTOIMMUNE_API_TIMEOUT", "30"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("AUTOIMMUNE_API_RETRIES", "3"))
    )
    retry_wait_seconds: float = 0.5
    retry_wait_max_seconds: float = 8.0

    @property
    def entries_url(self) -> str:
        """Root of the disease entry endpoints."""
        return f"{self.base_url.rstrip('/')}/api/disease"

    @property
    def users_url(self) -> str:
        """Root of the user management endpoints."""
        return f"{self.base_url.rstrip('/')}/api/users"


@dataclass
class BrowseConfig:
    """Disease browsing screen behaviour."""

    page_size: int = field(
        default_factory=lambda: int(os.getenv("BROWSE_PAGE_SIZE", "20"))
    )
    apply_debounce_seconds: float = 0.5
    suggestion_debounce_seconds: float = 0.25
    min_suggestion_chars: int = 2
    suggestion_fetch_limit: int = 50
    suggestions_per_field: int = 6


@dataclass
class DataConfig:
    """Local file locations."""

    exports_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("EXPORTS_PATH", str(PROJECT_ROOT / "data" / "exports"))
        )
    )
    session_file: Path = field(
        default_factory=lambda: Path(
            os.getenv("SESSION_FILE", str(Path.home() / ".autoimmune_console" / "session.json"))
        )
    )
    import_batch_size: int = 100


@dataclass
class AppConfig:
    """Application configuration settings."""

    name: str = field(default_factory=lambda: os.getenv("APP_NAME", "Autoimmune Reference Console"))
    version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@dataclass
class Config:
    """Main configuration container."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    browse: BrowseConfig = field(default_factory=BrowseConfig)
    data: DataConfig = field(default_factory=DataConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data.exports_path.mkdir(parents=True, exist_ok=True)
        self.data.session_file.parent.mkdir(parents=True, exist_ok=True)


# Global config instance
config = Config()
