import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Backend API Configuration
    api_base_url: str = Field(default="http://localhost:3000/api", alias="API_BASE_URL")
    api_auth_token: str | None = Field(default=None, alias="API_AUTH_TOKEN")
    api_timeout: float = Field(default=30.0, alias="API_TIMEOUT")
    api_retries: int = Field(default=3, ge=0, alias="API_RETRIES")
    api_retry_delay: float = Field(default=1.0, ge=0, alias="API_RETRY_DELAY")
    api_backoff_factor: float = Field(default=1.0, ge=1.0, alias="API_BACKOFF_FACTOR")

    # Logging
    api_enable_logging: bool = Field(default=True, alias="API_ENABLE_LOGGING")

    # Response cache
    api_enable_caching: bool = Field(default=True, alias="API_ENABLE_CACHING")
    api_cache_ttl_seconds: float = Field(default=300.0, ge=0, alias="API_CACHE_TTL")
    api_cache_max_size: int = Field(default=500, ge=1, alias="API_CACHE_MAX_SIZE")


global_settings = Settings.model_validate(dict(os.environ))
