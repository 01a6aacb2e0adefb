from typing import List, Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Data store
    STORE_BACKEND: Literal["firestore", "memory"] = "firestore"
    FIREBASE_CREDENTIALS: str = "credentials.json"
    DATABASE_URL: Optional[str] = None
    FIRESTORE_DATABASE: str = "ride-booking"

    # Credentials
    JWT_SECRET: str = "fallback-secret-CHANGE-IN-PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 7 * 24 * 60
    BCRYPT_ROUNDS: int = 12

    # HTTP
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 900
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    CORS_ORIGINS: str = "*"

    # Live updates
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    # Bootstrap admin
    ADMIN_NAME: str = "Administrator"
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PHONE: str = "+10000000000"
    ADMIN_PASSWORD: Optional[str] = None

    # Matching
    AVAILABLE_RIDES_SCAN_LIMIT: int = 50
    AVAILABLE_RIDES_LIMIT: int = 20

    model_config = ConfigDict(env_file='.env', extra='ignore')

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def rate_limit(self) -> str:
        return f"{self.RATE_LIMIT_MAX_REQUESTS} per {self.RATE_LIMIT_WINDOW_SECONDS} second"

settings = Settings()
