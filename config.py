from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    """Application settings - All values are loaded from .env file automatically"""

    # API Settings
    APP_NAME: str = "Faturamento TISS API"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./faturamento.db"

    # CORS Settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server Settings (optional)
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # TISS Settings
    TISS_VERSION: str = "4.02.00"
    TISS_XSD_PATH: Optional[str] = None
    TISS_MAX_GUIAS_PER_LOTE: int = 100

    # Glosa Settings
    GLOSA_PRAZO_RECURSO_DIAS: int = 30
    GLOSA_PRAZO_ALERTA_DIAS: int = 7

    # Monitoring (optional)
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: str = "development"

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"  # Ignore extra fields from .env
    }

settings = Settings()
