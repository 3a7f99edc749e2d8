"""Environment variables configuration."""
import os
from dotenv import load_dotenv

load_dotenv()


class ConfigError(RuntimeError):
    """Raised when a required setting is missing at startup."""


# Anthropic Configuration
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-3-7-sonnet-latest")
ANTHROPIC_MAX_TOKENS = int(os.getenv("ANTHROPIC_MAX_TOKENS", "1024"))

# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_MAX = int(os.getenv("DB_POOL_MAX", "5"))
CONVERSATIONS_COLLECTION = os.getenv("CONVERSATIONS_COLLECTION", "conversations")

# WebSocket
WS_REQUIRE_AUTH = os.getenv("WS_REQUIRE_AUTH", "False").lower() == "true"

# Server Configuration
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 5100))
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "*")
INIT_DB_TOKEN = os.getenv("INIT_DB_TOKEN", "")


def require_settings(api_key: str = None) -> None:
    """Fail fast when the upstream credential is not configured."""
    key = ANTHROPIC_API_KEY if api_key is None else api_key
    if not key or not key.strip():
        raise ConfigError("ANTHROPIC_API_KEY is not set in environment")
