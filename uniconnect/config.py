from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Any
import json


def parse_list(v: Any) -> List[str]:
    """Parse a list setting from a JSON array or a comma-separated string"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "UniConnect API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "uniconnect"

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str = "CHANGE_ME"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    BCRYPT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod

    # Student/university email suffixes accepted at registration
    ALLOWED_EMAIL_DOMAINS_STR: str = ".edu,.ac.in,.ac.uk,.edu.au"

    @property
    def ALLOWED_EMAIL_DOMAINS(self) -> List[str]:
        return parse_list(self.ALLOWED_EMAIL_DOMAINS_STR)

    # ==========================================
    # CORS
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_list(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/15minutes"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "json" is forced in production

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
