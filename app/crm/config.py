import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    env: str
    database_url: str
    log_level: str

    api_user_username: str
    api_user_password: str
    api_admin_username: str
    api_admin_password: str


DEFAULT_USER_PASSWORD = "password"
DEFAULT_ADMIN_PASSWORD = "admin"


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///crm.db"),
        log_level=_getenv("LOG_LEVEL", "INFO"),
        api_user_username=_getenv("API_USER_USERNAME", "user"),
        api_user_password=_getenv("API_USER_PASSWORD", DEFAULT_USER_PASSWORD),
        api_admin_username=_getenv("API_ADMIN_USERNAME", "admin"),
        api_admin_password=_getenv("API_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "API_USER_USERNAME": s.api_user_username,
        "API_USER_PASSWORD": s.api_user_password,
        "API_ADMIN_USERNAME": s.api_admin_username,
        "API_ADMIN_PASSWORD": s.api_admin_password,
    }
