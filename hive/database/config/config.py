from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PORT: int = 3001
    """Port the uvicorn server binds to."""

    HOST: str = "0.0.0.0"
    """Interface the uvicorn server binds to."""

    FRONTEND_URL: str = "http://localhost:5173"
    """Base URL of the frontend client application (CORS origin)."""

    DATABASE_URL: str = "sqlite:///./hive.db"
    """SQLAlchemy database URL (e.g., `postgresql+psycopg://...`)."""

    JWT_SECRET: str = "change-me"
    """Secret key used for signing access tokens."""

    JWT_ALGORITHM: str = "HS256"
    """Algorithm used for JWT signing."""

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    """Duration (in minutes) before access tokens expire."""

    BCRYPT_ROUNDS: int = 12
    """Work factor for password hashing."""

    LOG_LEVEL: str = "INFO"
    """Root logging level."""

    FADE_ROOM_REQUIRES_PARTICIPANT: bool = False
    """Require a participant row before a socket may join a fade room."""

    VITE_API_URL: str = ""
    """API base URL injected into the frontend (e.g., Vite builds)."""

    VITE_SOCKET_URL: str = ""
    """Gateway URL injected into the frontend."""


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Singleton instance of Settings, ready to be imported across the app
settings = get_settings()
"""Defines a Settings object that contains the contents of the .env file"""


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': settings.LOG_LEVEL,
    },
    'loggers': {
        'uvicorn.access': {
            'level': 'WARNING',
        },
        'sqlalchemy.engine': {
            'level': 'WARNING',
            'handlers': ['console'],
            'propagate': False,
        },
    },
}
