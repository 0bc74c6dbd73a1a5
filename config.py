"""
Settings for the shop API.

Values come from the environment (a local ``.env`` file is loaded first):

- DATABASE_URL   MongoDB connection string (default: mongodb://localhost:27017)
- DATABASE_NAME  database holding the Product and User collections (default: shop)
- JWT_SECRET     signing key for auth tokens; a random per-process key is used when unset
- HOST / PORT    bind address for ``python main.py`` (default: 0.0.0.0:8000)
- CORS_ORIGINS   comma-separated origins, ``*`` for any (default: *)
- COOKIE_SECURE  "1"/"true"/"yes"/"on" marks the auth cookie Secure
- LOG_LEVEL      logging level name (default: INFO)
"""

import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_origins(raw: str) -> List[str]:
    parts = [p.strip() for p in (raw or "").split(",")]
    origins = [p for p in parts if p]
    return origins or ["*"]


@dataclass
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "shop"
    jwt_secret: str = ""
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    cookie_secure: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        port_raw = os.getenv("PORT", "").strip()
        try:
            port = int(port_raw) if port_raw else cls.port
        except ValueError:
            port = cls.port
        if port <= 0 or port > 65535:
            port = cls.port

        jwt_secret = os.getenv("JWT_SECRET", "").strip()
        if not jwt_secret:
            logger.warning("JWT_SECRET is not set; using a random secret, tokens will not survive a restart")
            jwt_secret = secrets.token_hex(32)

        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            jwt_secret=jwt_secret,
            host=os.getenv("HOST", cls.host),
            port=port,
            cors_origins=_parse_origins(os.getenv("CORS_ORIGINS", "*")),
            cookie_secure=os.getenv("COOKIE_SECURE", "").strip().lower() in _TRUTHY,
            log_level=os.getenv("LOG_LEVEL", cls.log_level).strip().upper() or cls.log_level,
        )


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process settings, reading the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def configure_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
