import os
import logging
import secrets

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _get_int_env(var_name: str, default: int) -> int:
    """Safely parse integer environment variables with defaults."""
    value = os.getenv(var_name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Application configuration."""
    DATABASE_URL = os.getenv("DATABASE_URL")
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST")
    DB_NAME = os.getenv("DB_NAME")

    SECRET_KEY = os.getenv("SECRET_KEY")
    ENFORCE_HTTPS = os.getenv("ENFORCE_HTTPS") == "1"
    SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "portal_societario_session")
    SLOW_REQUEST_THRESHOLD_MS = float(os.getenv("SLOW_REQUEST_THRESHOLD_MS", "750"))

    APP_LOG_DIR = os.getenv("APP_LOG_DIR")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    SLOW_QUERY_THRESHOLD_MS = float(os.getenv("SLOW_QUERY_THRESHOLD_MS", "1000"))

    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI") or os.getenv("REDIS_URL") or "memory://"

    # Consulta de CEP: sem base configurada usa ViaCEP
    CEP_API_BASE_URL = os.getenv("CEP_API_BASE_URL")
    CEP_API_TOKEN = os.getenv("CEP_API_TOKEN")
    EXTERNAL_API_TIMEOUT = _get_int_env("EXTERNAL_API_TIMEOUT", 20)

    EMPRESAS_PER_PAGE = _get_int_env("EMPRESAS_PER_PAGE", 20)

    @classmethod
    def database_uri(cls, instance_path: str) -> str:
        """Resolve the SQLAlchemy URI, falling back to a local SQLite file."""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL

        missing = [
            name for name, value in (
                ("DB_USER", cls.DB_USER),
                ("DB_PASSWORD", cls.DB_PASSWORD),
                ("DB_HOST", cls.DB_HOST),
                ("DB_NAME", cls.DB_NAME),
            )
            if value is None
        ]
        if missing:
            logger.warning(
                "Variáveis de banco ausentes (%s); usando SQLite local em modo de fallback.",
                ", ".join(missing),
            )
            os.makedirs(instance_path, exist_ok=True)
            return f"sqlite:///{os.path.join(instance_path, 'app.db')}"

        if cls.DB_PASSWORD == "":
            logger.warning("DB_PASSWORD está vazio; conectando ao MySQL sem senha (apenas recomendado para desenvolvimento local).")
        return f"mysql+pymysql://{cls.DB_USER}:{cls.DB_PASSWORD}@{cls.DB_HOST}/{cls.DB_NAME}"

    @classmethod
    def secret_key(cls) -> str:
        if not cls.SECRET_KEY:
            logger.warning("SECRET_KEY não definida; gerando valor temporário apenas para ambiente local.")
            return secrets.token_urlsafe(32)
        return cls.SECRET_KEY

    @classmethod
    def validate(cls) -> None:
        if not cls.CEP_API_BASE_URL:
            logger.info("CEP_API_BASE_URL not set - using ViaCEP for address lookups")
        elif not cls.CEP_API_TOKEN:
            logger.warning("CEP_API_TOKEN not set - ignoring CEP_API_BASE_URL and using ViaCEP")
