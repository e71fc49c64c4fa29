"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: str = (
        "http://localhost:3000,http://localhost:5173,http://localhost:5174,"
        "http://127.0.0.1:3000,http://127.0.0.1:5173"
    )

    # User store
    users_file: str = "data/users.json"
    default_admin_password: str = "admin123"

    # Sessions
    session_ttl_seconds: int = 0  # 0 disables expiry
    session_revoke_on_password_change: bool = False

    # SAP OData upstream
    sap_base_url: str = ""
    sap_odata_service_path: str = ""
    sap_username: str = ""
    sap_password: str = ""
    sap_client: str = "100"
    sap_timeout_seconds: float = 30.0
    ssl_reject_unauthorized: bool = False

    # CSRF token handling
    sap_csrf_token_endpoint: str = ""
    csrf_token_cache_duration: int = 3_600_000  # milliseconds
    csrf_fetch_timeout_seconds: float = 10.0

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated allowed origins into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def missing_sap_settings(self) -> List[str]:
        """Names of required SAP variables that are not configured."""
        required = {
            "SAP_BASE_URL": self.sap_base_url,
            "SAP_USERNAME": self.sap_username,
            "SAP_PASSWORD": self.sap_password,
            "SAP_ODATA_SERVICE_PATH": self.sap_odata_service_path,
        }
        return [name for name, value in required.items() if not value]

    @property
    def csrf_token_cache_seconds(self) -> float:
        """CSRF token lifetime; the variable is given in milliseconds."""
        return self.csrf_token_cache_duration / 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
