"""
Configuration Management
Loads environment defaults and per-addon options
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Any, Optional


class Settings(BaseSettings):
    """Runtime defaults from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STREMIO_ADDON_",
        case_sensitive=True,
        extra="ignore",
    )

    # Server
    BIND_ADDR: str = "localhost"
    PORT: int = 8080
    BASE_URL: str = "http://localhost:8080"

    # User data
    USER_DATA_IS_BASE64: bool = False

    # Handlers
    HANDLER_TIMEOUT_SECONDS: float = 30.0  # 0 disables the deadline
    CACHE_MAX_AGE: int = 0  # seconds, 0 = no Cache-Control header

    # Request logging
    DISABLE_REQUEST_LOGGING: bool = False
    LOG_IPS: bool = False
    LOG_USER_AGENT: bool = False

    # Development
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"


settings = Settings()


class AddonOptions(BaseModel):
    """Options of a single addon instance, defaulting to the environment settings"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    bind_addr: str = Field(default_factory=lambda: settings.BIND_ADDR)
    port: int = Field(default_factory=lambda: settings.PORT)
    log_level: str = Field(default_factory=lambda: settings.LOG_LEVEL)
    user_data_is_base64: bool = Field(default_factory=lambda: settings.USER_DATA_IS_BASE64)
    handler_timeout: Optional[float] = Field(
        default_factory=lambda: settings.HANDLER_TIMEOUT_SECONDS or None,
        description="Deadline in seconds for a single handler call, None for no deadline",
    )
    cache_max_age: int = Field(default_factory=lambda: settings.CACHE_MAX_AGE, ge=0)
    disable_request_logging: bool = Field(default_factory=lambda: settings.DISABLE_REQUEST_LOGGING)
    log_ips: bool = Field(default_factory=lambda: settings.LOG_IPS)
    log_user_agent: bool = Field(default_factory=lambda: settings.LOG_USER_AGENT)
    debug: bool = Field(default_factory=lambda: settings.DEBUG)

    redirect_url: Optional[str] = Field(None, description="Where GET / redirects to")
    configure_html: Optional[str] = Field(None, description="HTML served at /configure")

    # Object with an async get_meta(media_type, imdb_id) method
    meta_client: Optional[Any] = None
    put_meta_in_request: bool = False
