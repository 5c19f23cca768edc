from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
from urllib.parse import quote

class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # API Settings
    PROJECT_NAME: str = "Homework Helper API"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # External APIs
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    VISION_MODEL: str = "gpt-4o"
    MAX_TOKENS: int = 2000
    UPSTREAM_TIMEOUT: float = 30.0

    # Upload Limits
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024  # 5MB, 0 disables the check

    # Inbound API key, enforced only when set
    ANALYZE_API_KEY: Optional[str] = None

    # Forward proxy for the outbound provider call
    PROXY_HOST: Optional[str] = None
    PROXY_PORT: Optional[int] = None
    PROXY_USERNAME: Optional[str] = None
    PROXY_PASSWORD: Optional[str] = None
    PROXY_PROTOCOL: str = "http"

    # API Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    TRUST_FORWARDED_FOR: bool = False

    # CORS Settings
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Web tier (relay) settings
    WEB_PORT: int = 3000
    BACKEND_URL: str = "http://localhost:5000"
    RELAY_TIMEOUT: float = 30.0
    CSP_CONNECT_SRC: List[str] = []

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_settings()

    def _validate_settings(self):
        """Validate settings that depend on each other."""
        problems = []

        if self.MAX_IMAGE_BYTES < 0:
            problems.append("MAX_IMAGE_BYTES must be >= 0")
        if self.UPSTREAM_TIMEOUT <= 0 or self.RELAY_TIMEOUT <= 0:
            problems.append("UPSTREAM_TIMEOUT and RELAY_TIMEOUT must be positive")
        if self.RATE_LIMIT_WINDOW_SECONDS <= 0 or self.RATE_LIMIT_MAX_REQUESTS <= 0:
            problems.append("RATE_LIMIT_WINDOW_SECONDS and RATE_LIMIT_MAX_REQUESTS must be positive")
        if bool(self.PROXY_HOST) != bool(self.PROXY_PORT):
            problems.append("PROXY_HOST and PROXY_PORT must be set together")
        if self.PROXY_PROTOCOL not in ("http", "https"):
            problems.append("PROXY_PROTOCOL must be 'http' or 'https'")

        if problems:
            raise ValueError(
                f"Invalid configuration: {'; '.join(problems)}\n"
                f"Please check your .env file or environment variables."
            )

    @property
    def api_key_required(self) -> bool:
        return bool(self.ANALYZE_API_KEY)

    @property
    def proxy_url(self) -> Optional[str]:
        """Forward proxy URL with percent-encoded credentials, or None when no proxy is configured."""
        if not (self.PROXY_HOST and self.PROXY_PORT):
            return None

        auth = ""
        if self.PROXY_USERNAME:
            auth = quote(self.PROXY_USERNAME, safe="")
            if self.PROXY_PASSWORD:
                auth += ":" + quote(self.PROXY_PASSWORD, safe="")
            auth += "@"

        return f"{self.PROXY_PROTOCOL}://{auth}{self.PROXY_HOST}:{self.PROXY_PORT}"

    @property
    def proxy_display(self) -> Optional[str]:
        """Proxy location without credentials, safe for logs."""
        if not self.proxy_url:
            return None
        return f"{self.PROXY_PROTOCOL}://{self.PROXY_HOST}:{self.PROXY_PORT}"
