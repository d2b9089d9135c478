"""Application configuration"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./tollgate.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    AUTO_CREATE_TABLES: bool = True    # Production schemas are managed by alembic

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "*"

    # JWT signing
    JWT_ALGORITHM: str = "RS256"            # RS256 (RSA keypair) or HS256/HS384/HS512 (shared secret)
    JWT_PRIVATE_KEY: Optional[str] = None   # RSA-2048 PEM string; auto-generated on first use if absent
    JWT_SECRET: str = "dev-secret-key-change-in-production"  # only used by HS* algorithms
    JWT_ISSUER: str = "tollgate"
    JWT_KEY_ID: Optional[str] = None        # kid header for key rotation tracking

    # Token lifetimes
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 15 * 60          # 15 minutes
    REFRESH_TOKEN_EXPIRE_SECONDS: int = 7 * 24 * 3600   # 7 days

    # Password hashing
    BCRYPT_ROUNDS: int = Field(12, ge=4, le=31)

    # Session policy
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE: bool = False

    # Password reset hand-off (fire-and-forget webhook; no email is sent by this service)
    PASSWORD_RESET_WEBHOOK_URL: Optional[str] = None
    PASSWORD_RESET_WEBHOOK_SECRET: Optional[str] = None  # If set, signs body with HMAC-SHA256

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: List[str] = ["100/minute", "1000/hour"]
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # Use redis:// for production

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


settings = Settings()
