"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _optional_float(name: str):
    value = os.getenv(name)
    return float(value) if value else None


class Config:
    """Application configuration."""

    # Catalog
    OPENLIBRARY_BASE_URL = os.getenv("OPENLIBRARY_BASE_URL", "https://openlibrary.org")
    COVERS_BASE_URL = os.getenv("COVERS_BASE_URL", "https://covers.openlibrary.org/b/id")
    PLACEHOLDER_COVER = os.getenv("PLACEHOLDER_COVER", "https://placehold.co/200x300")
    DISCOVER_SUBJECT = os.getenv("DISCOVER_SUBJECT", "fiction")
    DISCOVER_LIMIT = int(os.getenv("DISCOVER_LIMIT", "6"))

    # Backend
    BOOKSHELF_API_URL = os.getenv("BOOKSHELF_API_URL", "")

    @property
    def API_BASE_URL(self):
        """Backend root with the /api prefix."""
        root = self.BOOKSHELF_API_URL.rstrip("/")
        return f"{root}/api" if root else "http://localhost:5000/api"

    # Device storage
    BOOKSHELF_STORAGE = os.getenv("BOOKSHELF_STORAGE", "file")
    BOOKSHELF_DATA_DIR = os.path.expanduser(os.getenv("BOOKSHELF_DATA_DIR", "~/.bookshelf"))

    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "bookshelf")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Network policy; no timeout and a single attempt unless configured
    DEFAULT_TIMEOUT = _optional_float("DEFAULT_TIMEOUT")
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "1"))
