"""Environment configuration.

The API key is only required for commands that talk to the platform, so it
is checked lazily with require_api_key() rather than at import time; a
missing key fails before any network call is made.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from coldcall.errors import ConfigurationError
from coldcall.platform import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

OPTIONAL_VARS = [
    "VAPI_WEBHOOK_SECRET",
    "PORT",
    "VAPI_BASE_URL",
    "LOG_LEVEL",
]


@dataclass
class Settings:
    api_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    port: int = DEFAULT_PORT
    base_url: str = DEFAULT_BASE_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        port = os.getenv("PORT", "")
        try:
            port_value = int(port) if port else DEFAULT_PORT
        except ValueError as e:
            raise ConfigurationError(f"PORT must be an integer, got {port!r}") from e
        return cls(
            api_key=os.getenv("VAPI_API_KEY") or None,
            webhook_secret=os.getenv("VAPI_WEBHOOK_SECRET") or None,
            port=port_value,
            base_url=os.getenv("VAPI_BASE_URL") or DEFAULT_BASE_URL,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )


def require_api_key(settings: Settings) -> str:
    if not settings.api_key:
        raise ConfigurationError("VAPI_API_KEY environment variable is required")
    return settings.api_key


def validate_config() -> None:
    """Log a warning for each optional variable that is not set."""
    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)
    if not os.getenv("VAPI_WEBHOOK_SECRET"):
        logger.warning("Webhook signatures will NOT be verified")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
