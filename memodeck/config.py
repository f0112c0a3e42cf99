"""Application configuration loaded from environment variables."""

import os


def get_decks_dir() -> str:
    """Directory holding one JSON file per deck.

    Environment variable: MEMODECK_DECKS_DIR
    Default: ./decks
    """
    return os.getenv("MEMODECK_DECKS_DIR", "decks")


def get_cors_origins() -> list[str]:
    """Get allowed CORS origins from environment.

    Environment variable: CORS_ORIGINS (comma-separated)
    Default: local frontend dev servers
    """
    default_origins = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
    origins_str = os.getenv("CORS_ORIGINS", default_origins)
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


def get_host() -> str:
    return os.getenv("MEMODECK_HOST", "127.0.0.1")


def get_port() -> int:
    return int(os.getenv("MEMODECK_PORT", "8000"))


def get_flip_delay_seconds() -> float:
    """Delay between a judgment and the queue update in the desktop UI.

    Lets the card flip back before its content changes.
    Environment variable: MEMODECK_FLIP_DELAY_MS
    Default: 150
    """
    return int(os.getenv("MEMODECK_FLIP_DELAY_MS", "150")) / 1000


def get_log_level() -> str:
    return os.getenv("MEMODECK_LOG_LEVEL", "INFO").upper()
