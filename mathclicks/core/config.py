from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod
    APP_NAME: str = "MathClicks API"
    APP_VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Backend (vide = mode fallback : CLI bridge ou réponse statique)
    BACKEND_URL: Optional[str] = None
    BACKEND_TIMEOUT: float = 300.0

    # CLI bridge
    CLI_BRIDGE_COMMAND: str = "npx ts-node src/cli-bridge.ts"
    CLI_BRIDGE_DIR: str = ".."

    # Storage
    STORAGE_PATH: str = "./storage"
    MAX_UPLOAD_MB: int = 10
    SESSION_EXPIRY_DAYS: int = 7

    # Partage enseignant (secondes, 0 = pas de synchro périodique)
    TEACHER_SYNC_INTERVAL: float = 30.0

    # État en mémoire par client : éviction après inactivité (secondes, 0 = jamais)
    CLIENT_IDLE_TIMEOUT: float = 3600.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
