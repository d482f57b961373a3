"""
Situation Room Service Configuration

Configuration class for the situation room chat orchestration service.
"""
import os
from pathlib import Path
from urllib.parse import quote_plus
from dotenv import load_dotenv

# Load .env file from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


class Config:
    """Configuration class for Situation Room Service"""

    # Base paths
    BASE_DIR = Path(__file__).parent.parent.parent

    # Database settings
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "situation_room")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    # API settings
    API_HOST = os.getenv("API_HOST", "127.0.0.1")
    API_PORT = int(os.getenv("API_PORT", "8200"))
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    MIGRATE_ON_START = os.getenv("MIGRATE_ON_START", "false").lower() == "true"

    # JWT settings (caller identity for every request)
    JWT_SECRET = os.getenv("JWT_SECRET", "situation-room-secret-change-in-production")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    # Chat provider (Mattermost compatible API, e.g. http://chat:8065/api/v4)
    CHAT_API_URL = os.getenv("CHAT_API_URL", "http://localhost:8065/api/v4")
    CHAT_ADMIN_TOKEN = os.getenv("CHAT_ADMIN_TOKEN", "")
    CHAT_TEAM_ID = os.getenv("CHAT_TEAM_ID", "")
    CHAT_HTTP_TIMEOUT = float(os.getenv("CHAT_HTTP_TIMEOUT", "30"))

    # Remote identities created on first use
    CHAT_USER_EMAIL_DOMAIN = os.getenv("CHAT_USER_EMAIL_DOMAIN", "situation-room.local")
    CHAT_USER_PASSWORD = os.getenv("CHAT_USER_PASSWORD", "dummy1234")
    MAX_REMOTE_USERNAME_LENGTH = int(os.getenv("MAX_REMOTE_USERNAME_LENGTH", "22"))

    # Business object API used to snapshot room context
    DOMAIN_API_URL = os.getenv("DOMAIN_API_URL", "http://localhost:8300/api/v1")
    DOMAIN_API_TOKEN = os.getenv("DOMAIN_API_TOKEN", "")

    @staticmethod
    def get_postgres_dsn() -> str:
        """Get PostgreSQL DSN with password handling"""
        dsn = os.getenv("POSTGRES_DSN")
        if dsn:
            return dsn
        if Config.DB_PASSWORD:
            password = quote_plus(Config.DB_PASSWORD)
            return f"postgresql://{Config.DB_USER}:{password}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"
        return f"postgresql://{Config.DB_USER}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"
