import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_VISION_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]
# Checked in order; deployments have used each of these names for the same secret
API_KEY_ENV_NAMES = (
    "OPENAI_API_KEY",
    "OPENAI_APIKEY",
    "OPENAI_KEY",
    "OPENAI_API_KEY_PROD",
)


class Settings(BaseModel):
    database_url: str
    vision_api_url: str = DEFAULT_VISION_API_URL
    vision_api_key: Optional[str] = None
    vision_model: str = "gpt-4o"
    vision_max_tokens: int = 500
    vision_timeout: float = 30.0
    cors_origins: List[str] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"
    port: int = 5000

    @classmethod
    def from_env(cls) -> "Settings":
        cors = os.getenv("CORS_ORIGINS")
        return cls(
            database_url=database_url_from_env(),
            vision_api_url=os.getenv("VISION_API_URL", DEFAULT_VISION_API_URL),
            vision_api_key=api_key_from_env(),
            vision_model=os.getenv("VISION_MODEL", "gpt-4o"),
            vision_max_tokens=int(os.getenv("VISION_MAX_TOKENS", 500)),
            vision_timeout=float(os.getenv("VISION_TIMEOUT", 30)),
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()] if cors else DEFAULT_CORS_ORIGINS,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", 5000)),
        )


def database_url_from_env() -> str:
    # Prefer discrete DB_* variables when present (Docker local). Fallback to DATABASE_URL.
    db_user = os.getenv("DB_USER")
    db_password = os.getenv("DB_PASSWORD")
    db_host = os.getenv("DB_HOST")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_NAME")
    db_sslmode = os.getenv("DB_SSLMODE")  # e.g., require

    if db_user and db_password and db_host and db_name:
        url = f"postgresql+psycopg2://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        if db_sslmode:
            url += f"?sslmode={db_sslmode}"
        return url

    url = os.getenv("DATABASE_URL")
    if not url:
        missing = [k for k, v in {
            "DB_USER": db_user,
            "DB_PASSWORD": db_password,
            "DB_HOST": db_host,
            "DB_NAME": db_name,
        }.items() if not v]

        raise RuntimeError(
            f"Missing required database env vars: {', '.join(missing)}. "
            "Set DB_USER/DB_PASSWORD/DB_HOST/DB_NAME (optional DB_PORT, DB_SSLMODE) or provide DATABASE_URL."
        )
    return url


def api_key_from_env() -> Optional[str]:
    for name in API_KEY_ENV_NAMES:
        value = os.getenv(name)
        if value:
            return value
    return None


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
