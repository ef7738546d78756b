"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

DEV_JWT_SECRET = "dev-jwt-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    # ==========================================================================
    # Environment
    # ==========================================================================
    
    environment: str = "development"
    
    # ==========================================================================
    # API Server
    # ==========================================================================
    
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    client_url: str = "http://localhost:3000"
    
    # ==========================================================================
    # Authentication
    # ==========================================================================
    
    jwt_secret_key: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_token_lifetime_hours: int = 24
    
    # PBKDF2 work factor; ~100k rounds keeps a single verify in the tens of ms
    password_hash_iterations: int = 100_000
    
    # Federated login (optional)
    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_oauth_redirect_uri: str = "http://localhost:5000/api/auth/google/callback"
    
    # ==========================================================================
    # Optional Services
    # ==========================================================================
    
    sentry_dsn: str = ""
    
    # ==========================================================================
    # Helpers
    # ==========================================================================
    
    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
    
    @property
    def is_production(self) -> bool:
        return self.environment == "production"
    
    def check_secrets(self) -> None:
        """Refuse to run production with the development signing secret."""
        if self.is_production and self.jwt_secret_key == DEV_JWT_SECRET:
            raise RuntimeError("JWT_SECRET_KEY must be set in production")
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
