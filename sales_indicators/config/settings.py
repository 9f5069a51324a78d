from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from dotenv import load_dotenv
load_dotenv()

class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "Sales Indicators API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 5000
    CORS_ORIGINS: str = "*"

    # Database Settings (SQL Server)
    DB_SERVER: str = "localhost"
    DB_PORT: int = 1433
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_DATABASE: str = "CSID"
    DB_DRIVER: str = "ODBC Driver 18 for SQL Server"
    DB_ENCRYPT: bool = False  # Disabled for local connections
    DB_TRUST_SERVER_CERTIFICATE: bool = True
    SQL_ECHO: bool = False

    # Connection pool bounds
    DB_POOL_MAX: int = 10
    DB_POOL_IDLE_TIMEOUT_MS: int = 30000

    # Reports
    TOP_SALES_DOC_PREFIX: str = "CMDE"

    # Dashboard client
    DASHBOARD_API_URL: str = "http://localhost:5000/api"
    DASHBOARD_TIMEOUT_SECONDS: float = 10.0

    # API Settings
    API_PREFIX: str = "/api"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def cors_origins(self):
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
