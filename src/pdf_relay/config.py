import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


DEFAULT_IMS_TOKEN_URL = "https://ims-na1.adobelogin.com/ims/token/v3"
DEFAULT_PDF_SERVICES_URL = "https://pdf-services.adobe.io"
DEFAULT_SCOPES = "openid,AdobeID,read_organizations,pdf_services"


class ConfigurationError(Exception):
    """Raised at startup when the environment cannot produce valid settings."""


@dataclass(frozen=True)
class RelaySettings:
    """Process-wide, read-only settings for the relay.

    Built once at startup and handed to every component that needs it.
    """

    client_id: str
    client_secret: str = field(repr=False)
    ims_token_url: str = DEFAULT_IMS_TOKEN_URL
    pdf_services_url: str = DEFAULT_PDF_SERVICES_URL
    scopes: str = DEFAULT_SCOPES
    poll_interval_sec: float = 2.0
    max_polls: int = 20
    max_body_mb: int = 15
    http_timeout_sec: float = 60.0

    def __post_init__(self) -> None:
        if not self.client_id or not self.client_id.strip():
            raise ConfigurationError("ADOBE_CLIENT_ID must be set")
        if not self.client_secret or not self.client_secret.strip():
            raise ConfigurationError("ADOBE_CLIENT_SECRET must be set")
        if self.max_polls < 1:
            raise ConfigurationError("MAX_POLLS must be at least 1")
        if self.max_body_mb < 1:
            raise ConfigurationError("MAX_BODY_MB must be at least 1")
        if self.http_timeout_sec <= 0:
            raise ConfigurationError("HTTP_TIMEOUT_SEC must be positive")
        if self.poll_interval_sec < 0:
            raise ConfigurationError("POLL_INTERVAL_SEC must not be negative")

    @property
    def max_body_bytes(self) -> int:
        return self.max_body_mb * 1024 * 1024

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "RelaySettings":
        """Read settings from environment variables (and `.env` when present)."""
        if dotenv:
            load_dotenv()
        return cls(
            client_id=os.getenv("ADOBE_CLIENT_ID", ""),
            client_secret=os.getenv("ADOBE_CLIENT_SECRET", ""),
            ims_token_url=os.getenv("ADOBE_IMS_TOKEN_URL", DEFAULT_IMS_TOKEN_URL),
            pdf_services_url=os.getenv("ADOBE_PDF_SERVICES_URL", DEFAULT_PDF_SERVICES_URL).rstrip("/"),
            scopes=os.getenv("ADOBE_SCOPES", DEFAULT_SCOPES),
            poll_interval_sec=_number("POLL_INTERVAL_SEC", "2.0", float),
            max_polls=_number("MAX_POLLS", "20", int),
            max_body_mb=_number("MAX_BODY_MB", "15", int),
            http_timeout_sec=_number("HTTP_TIMEOUT_SEC", "60", float),
        )


def _number(name: str, default: str, kind):
    raw = os.getenv(name, default)
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
