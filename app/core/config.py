import os
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()

class Settings:
    # Environment setting
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

    # Clerk Configuration
    CLERK_SECRET_KEY = os.getenv("CLERK_SECRET_KEY")
    CLERK_WEBHOOK_SECRET = os.getenv("CLERK_WEBHOOK_SECRET")  # whsec_..., required outside development

    # db creds
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_NAME = os.getenv("DB_NAME", "heart_track")
    DB_PORT = os.getenv("DB_PORT", "5432")

    # Timezones
    DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Phoenix")  # read paths with no device
    DEVICE_DEFAULT_TIMEZONE = os.getenv("DEVICE_DEFAULT_TIMEZONE", "America/New_York")  # new devices

    # Logging
    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

    # Build URL with SSL requirement based on environment
    def _build_database_url(self):
        override = os.getenv("DATABASE_URL")
        if override:
            return override
        base_url = f"postgresql+asyncpg://{self.DB_USER}:{quote_plus(self.DB_PASSWORD)}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        if self.ENVIRONMENT == "development":
            return base_url
        return f"{base_url}?ssl=require"

    @property
    def DATABASE_URL(self):
        return self._build_database_url()

    @property
    def IS_DEVELOPMENT(self):
        return self.ENVIRONMENT == "development"

settings = Settings()
