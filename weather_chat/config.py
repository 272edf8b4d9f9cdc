import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parents[1]

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-pro")
GEMINI_API_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta")

GEOCODING_API_URL = os.getenv("GEOCODING_API_URL", "https://nominatim.openstreetmap.org/search")
FORECAST_API_URL = os.getenv("FORECAST_API_URL", "https://api.open-meteo.com/v1/forecast")
HTTP_USER_AGENT = os.getenv("HTTP_USER_AGENT", "weather-chat/1.0")
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

DEFAULT_WEATHER_CITY = os.getenv("DEFAULT_WEATHER_CITY", "Bogotá")

CHAT_DB_PATH = os.getenv("CHAT_DB_PATH")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _env_choice(name: str, choices: set[str], default: str) -> str:
    value = str(os.getenv(name) or "").strip().lower()
    return value if value in choices else default


HTTP_TIMEOUT_SECONDS = _env_float("HTTP_TIMEOUT_SECONDS", 10.0)

# "model" hands unresolvable weather questions to the language model,
# "apology" answers them with the fixed weather apology instead.
WEATHER_FALLBACK_POLICY = _env_choice("WEATHER_FALLBACK_POLICY", {"model", "apology"}, "model")
LLM_ROLE_FIDELITY = _env_flag("LLM_ROLE_FIDELITY", False)

# Debug gate: exception detail and the orchestration trace are never returned unless this is true.
APP_DEBUG = _env_flag("APP_DEBUG", False)
