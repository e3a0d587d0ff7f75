# omnisale/config.py
import logging
import os
from dataclasses import dataclass, field
from typing import List
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse, ParseResult

from dotenv import load_dotenv

load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    # set-but-empty counts as unset
    return os.getenv(name) or default


def _env_int(name: str, default: str) -> int:
    raw = _env_str(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None


def _env_float(name: str, default: str) -> float:
    raw = _env_str(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid float for {name}: {raw!r}") from None


def _env_bool(name: str, default: str = "false") -> bool:
    return _env_str(name, default).lower() in ("1", "true", "yes")


def strip_query_params(url: str, drop_keys=("sslmode", "channel_binding")) -> str:
    # asyncpg.connect() rejects these as unexpected keyword args
    p = urlparse(url)
    qs = parse_qs(p.query, keep_blank_values=True)
    for k in list(qs.keys()):
        if k in drop_keys:
            qs.pop(k)
    new_query = urlencode({k: v[0] for k, v in qs.items()})
    newp = ParseResult(
        scheme=p.scheme, netloc=p.netloc, path=p.path,
        params=p.params, query=new_query, fragment=p.fragment
    )
    return urlunparse(newp)


def normalize_database_url(url: str) -> str:
    # Ensure async driver
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return strip_query_params(url)


def _split_csv(raw: str) -> List[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str = _env_str("APP_ENV", "production").lower()
    log_level: str = _env_str("LOG_LEVEL", "INFO").upper()

    database_url: str = normalize_database_url(
        _env_str("DATABASE_URL", "sqlite+aiosqlite:///./omnisale.db")
    )

    jwt_secret_key: str = _env_str("JWT_SECRET_KEY", "change_me_long_secret")
    jwt_algorithm: str = _env_str("JWT_ALGORITHM", "HS256")

    # LLM providers, checked in this order: Gemini, Groq, OpenAI
    use_gemini: bool = _env_bool("USE_GEMINI")
    gemini_api_key: str = _env_str("GEMINI_API_KEY")
    gemini_model: str = _env_str("GEMINI_MODEL", "gemini-2.5-flash")
    use_groq: bool = _env_bool("USE_GROQ")
    groq_api_key: str = _env_str("GROQ_API_KEY")
    groq_model: str = _env_str("GROQ_MODEL", "llama-3.3-70b-versatile")
    openai_api_key: str = _env_str("OPENAI_API_KEY")
    openai_model: str = _env_str("OPENAI_MODEL", "gpt-4o-mini")

    classify_timeout_s: float = _env_float("CLASSIFY_TIMEOUT_S", "8")
    generate_timeout_s: float = _env_float("GENERATE_TIMEOUT_S", "10")
    store_timeout_s: float = _env_float("STORE_TIMEOUT_S", "5")
    payment_timeout_s: float = _env_float("PAYMENT_TIMEOUT_S", "15")
    fulfillment_timeout_s: float = _env_float("FULFILLMENT_TIMEOUT_S", "10")

    history_limit: int = _env_int("HISTORY_LIMIT", "10")
    default_store_location: str = _env_str("DEFAULT_STORE_LOCATION", "Mumbai-Andheri")
    default_pickup_slot: str = _env_str("DEFAULT_PICKUP_SLOT", "6pm-8pm")

    # Unset URL means the static in-process gateway is used
    payment_gateway_url: str = _env_str("PAYMENT_GATEWAY_URL")
    fulfillment_service_url: str = _env_str("FULFILLMENT_SERVICE_URL")

    jira_site: str = _env_str("JIRA_SITE")
    jira_email: str = _env_str("JIRA_EMAIL")
    jira_api_token: str = _env_str("JIRA_API_TOKEN")
    jira_project_key: str = _env_str("JIRA_PROJECT_KEY")

    cors_origins: List[str] = field(default_factory=lambda: _split_csv(
        _env_str("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    ))

    @property
    def debug(self) -> bool:
        return self.app_env == "development"


settings = Settings()

_logging_configured = False


def configure_logging(level: str = None) -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _logging_configured = True
