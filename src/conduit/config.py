"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings

from conduit.errors.exceptions import ConfigurationError

APP_VERSION = "0.1.0"

# Settings each mode needs before the app may become ready
_REQUIRED_ALWAYS = (
    "identity_webhook_secret",
    "payment_secret_key",
    "payment_webhook_secret",
    "postmark_api_key",
    "email_from_address",
)
_REQUIRED_REMOTE = (
    "datalayer_endpoint",
    "datalayer_admin_secret",
    "redis_host",
)


class Settings(BaseSettings):
    # Identity provider
    identity_webhook_secret: str = ""
    identity_jwt_public_key: str | None = None
    identity_jwt_secret: str | None = None
    identity_jwt_issuer: str | None = None

    # Payment processor
    payment_secret_key: str = ""
    payment_webhook_secret: str = ""

    # GraphQL data layer
    datalayer_endpoint: str = ""
    datalayer_admin_secret: str = ""
    datalayer_webhook_secret: str | None = None
    datalayer_timeout_seconds: float = 10.0

    # Local development mode (set CONDUIT_LOCAL_MODE=1 to use SQLite, skip Redis)
    local_mode: bool = False
    database_url: str = "sqlite+aiosqlite:///conduit_local.db"

    # Background store
    redis_host: str = ""
    redis_port: int = 6379
    redis_password: str | None = None

    # Outbound email
    postmark_api_key: str = ""
    email_from_address: str = ""
    email_message_stream: str = "outbound"

    # Webhooks
    webhook_tolerance_seconds: int = 300
    otp_ttl_seconds: int = 300

    # Queues
    queue_concurrency: int = 2
    queue_retain_completed: int = 100
    queue_retain_failed: int = 500
    dashboard_interval_seconds: float = 5.0

    # CORS
    cors_allowed_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Server
    host: str = "0.0.0.0"
    port: int = 8001
    log_level: str = "info"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "CONDUIT_",
    }

    def require(self, *names: str) -> None:
        """Raise ConfigurationError naming every unset setting in ``names``."""
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(missing)

    def validate_for_startup(self) -> None:
        """Fail fast on credentials the selected mode cannot run without."""
        required = _REQUIRED_ALWAYS if self.local_mode else _REQUIRED_ALWAYS + _REQUIRED_REMOTE
        self.require(*required)

    @property
    def redis_url(self) -> str:
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/0"


settings = Settings()
