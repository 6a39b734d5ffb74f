import os

from dotenv import load_dotenv

# Load from .env if it exists (useful for local development)
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, default=None):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default=None):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


LOGGING_LEVEL = os.getenv("LOGGING_LEVEL", "").upper()

# Directory holding <provider>.json schema documents; bundled schemas are used
# for anything not found here.
SCHEMA_DIR = os.getenv("HYNI_SCHEMA_DIR", "")

# --- CONFIG --- context defaults
ENABLE_VALIDATION = _env_bool("HYNI_ENABLE_VALIDATION", True)
DEFAULT_MAX_TOKENS = _env_int("HYNI_DEFAULT_MAX_TOKENS")
DEFAULT_TEMPERATURE = _env_float("HYNI_DEFAULT_TEMPERATURE")

# --- CONFIG --- transport
HTTP_TIMEOUT_S = _env_float("HYNI_HTTP_TIMEOUT_S", 120.0)

# --- CONFIG --- API keys
HYNIRC_PATH = os.path.expanduser(os.getenv("HYNI_RC_PATH", "~/.hynirc"))
PROVIDER_KEY_ENV = {
    "openai": "OA_API_KEY",
    "deepseek": "DS_API_KEY",
    "claude": "CL_API_KEY",
    "mistral": "MS_API_KEY",
}
