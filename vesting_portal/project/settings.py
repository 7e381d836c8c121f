# project/settings.py
from pathlib import Path

from decouple import Csv, config
from eth_utils import is_address, to_checksum_address

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config("SECRET_KEY", default="dev-only-not-secret")
DEBUG = config("DEBUG", default=False, cast=bool)
ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="localhost", cast=Csv())
ENVIRONMENT = config("ENVIRONMENT", default="development")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "app",
]

DATABASES = {
    "default": {
        "ENGINE": config("DB_ENGINE", default="django.db.backends.sqlite3"),
        "NAME": config("DB_NAME", default=str(BASE_DIR / "db.sqlite3")),
        "USER": config("DB_USER", default=""),
        "PASSWORD": config("DB_PASSWORD", default=""),
        "HOST": config("DB_HOST", default=""),
        "PORT": config("DB_PORT", default=""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

# --- BLOCKCHAIN ---
ETHEREUM_RPC = config("ETHEREUM_RPC", default="https://sepolia.base.org")
CHAIN_ID = config("CHAIN_ID", default=84532, cast=int)  # Base Sepolia
POA_CHAIN = config("POA_CHAIN", default=False, cast=bool)
RPC_TIMEOUT = config("RPC_TIMEOUT", default=30, cast=int)

_contract = config("VESTING_CONTRACT_ADDRESS", default="")
VESTING_CONTRACT_ADDRESS = to_checksum_address(_contract) if is_address(_contract) else ""

# --- SYNC ---
START_BLOCK = config("START_BLOCK", default=0, cast=int)
SYNC_BATCH_SIZE = config("SYNC_BATCH_SIZE", default=10_000, cast=int)
LIVE_POLL_INTERVAL = config("LIVE_POLL_INTERVAL", default=2.0, cast=float)
LISTENER_MAX_RESTARTS = config("LISTENER_MAX_RESTARTS", default=5, cast=int)
LISTENER_BACKOFF_MAX = config("LISTENER_BACKOFF_MAX", default=60, cast=int)

# --- CELERY ---
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default=None)
CELERY_TASK_ALWAYS_EAGER = config("CELERY_TASK_ALWAYS_EAGER", default=False, cast=bool)

# --- LOGGING ---
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "app": {
            "handlers": ["console"],
            "level": config("LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
    },
}
