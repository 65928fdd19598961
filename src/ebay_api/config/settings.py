"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration."""

    # Database Configuration
    database_url: Optional[str] = None

    # Token Encryption
    token_encryption_key: Optional[str] = None

    # eBay API Configuration
    ebay_client_id: Optional[str] = None
    ebay_client_secret: Optional[str] = None
    ebay_oauth_scopes: str = "https://api.ebay.com/oauth/api_scope/sell.fulfillment.readonly"

    # Discord Configuration
    discord_token: Optional[str] = None

    # Tracking Provider Configuration
    tracking_provider: str = "seventeen-track"
    seventeentrack_api_key: Optional[str] = None
    aftership_api_key: Optional[str] = None

    # Sync Schedule Configuration
    sync_schedule_mode: str = "daily"
    sync_timezone: str = "America/New_York"
    sync_hour: int = 9
    sync_minute: int = 0
    sync_interval_seconds: int = 60

    # HTTP Configuration
    http_timeout_seconds: float = 20.0
    http_retries: int = 3

    # Server Configuration
    environment: str = "development"

    # GlitchTip Error Monitoring
    glitchtip_dsn: Optional[str] = None

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def missing_required(self) -> List[str]:
        """Names of required settings that are not set."""
        required = {
            "DATABASE_URL": self.database_url,
            "TOKEN_ENCRYPTION_KEY": self.token_encryption_key,
            "EBAY_CLIENT_ID": self.ebay_client_id,
            "EBAY_CLIENT_SECRET": self.ebay_client_secret,
            "DISCORD_TOKEN": self.discord_token,
        }
        return [name for name, value in required.items() if not value]

