"""Application settings.

Pydantic-based configuration loaded from the environment and an optional
``.env`` file.

Environment Variables:
- LNBRIDGE_DATABASE_URL: SQLAlchemy URL of the wallet store
- LNBRIDGE_MAINNET: Use the main-net lndhub service (default: false)
- LNBRIDGE_LNDHUB_DOMAIN / LNBRIDGE_LNADDRESS_DOMAIN: Override service hosts
- LNBRIDGE_REQUEST_MAX_ATTEMPTS: Attempt budget per lndhub call (default: 2)
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINNET_DOMAIN = "ln.mintter.com"
TESTNET_DOMAIN = "ln.testnet.mintter.com"


class Settings(BaseSettings):
    """lnbridge configuration.

    All settings can be overridden via environment variables with prefix
    ``LNBRIDGE_``.

    Example:
        >>> settings = Settings()
        >>> settings.lndhub_url
        'https://ln.testnet.mintter.com'
    """

    model_config = SettingsConfigDict(
        env_prefix="LNBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./lnbridge.db",
        description="SQLAlchemy database URL for the wallet store",
    )

    # Network
    mainnet: bool = Field(
        default=False,
        description="Talk to the main-net lndhub service instead of test-net",
    )
    lndhub_domain: str = Field(
        default="",
        description="Host of the lndhub.go service (derived from mainnet when empty)",
    )
    lnaddress_domain: str = Field(
        default="",
        description="Domain used in lightning addresses (derived from mainnet when empty)",
    )

    # HTTP client
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout for a single HTTP request to an lndhub backend",
    )
    request_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Attempts per lndhub call before giving up",
    )
    rate_limit_min_delay: float = Field(
        default=1.0,
        gt=0,
        description="Lower bound of the randomized wait after HTTP 429",
    )
    rate_limit_max_delay: float = Field(
        default=2.0,
        gt=0,
        description="Upper bound of the randomized wait after HTTP 429",
    )

    # P2P fallback
    p2p_device_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Time allowed to each remote device to mint an invoice",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    dev_mode: bool = Field(default=True, description="Colorful console logs")

    @model_validator(mode="after")
    def _derive_domains(self) -> "Settings":
        default = MAINNET_DOMAIN if self.mainnet else TESTNET_DOMAIN
        if not self.lndhub_domain:
            self.lndhub_domain = default
        if not self.lnaddress_domain:
            self.lnaddress_domain = default
        if self.rate_limit_max_delay < self.rate_limit_min_delay:
            raise ValueError("rate_limit_max_delay must be >= rate_limit_min_delay")
        return self

    @property
    def lndhub_url(self) -> str:
        """Base URL of the lndhub.go service."""
        return f"https://{self.lndhub_domain}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
