"""Django settings for the token sale backend.


A buyer pays USDT (pulled with transferFrom by the admin signer) and receives
freshly minted native tokens at a fixed price. Every attempt is written to the
core.Transaction ledger, which also backs the reporting endpoints.

Chain access goes through core.adapters: CHAIN_BACKEND=web3 talks to RPC_URL,
CHAIN_BACKEND=stub uses the in-database chain_stub app for local runs.
"""

import os
from pathlib import Path
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DEBUG", "1") in ("1", "true", "True", "yes")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "*").split(",")

#######################
# Required at startup: chain endpoint, both contracts, the admin signer and the store.
REQUIRED_ENV_VARS = [
	"RPC_URL",
	"USDT_CONTRACT_ADDRESS",
	"NATIVE_TOKEN_CONTRACT_ADDRESS",
	"ADMIN_PRIVATE_KEY",
	"ADMIN_ADDRESS",
	"DB_ENGINE",
]

_missing = [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]
if os.getenv("DB_ENGINE") == "postgres":
    _missing += [
        name for name in ("POSTGRES_DB", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST")
        if not os.getenv(name)
    ]
if _missing:
    raise ImproperlyConfigured(f"Missing required environment variables: {', '.join(_missing)}")


def parse_token_price(raw: str) -> Decimal:
	"""
	TOKEN_PRICE_USDT must be a positive decimal; tokens are priced by dividing by it.
	"""
	try:
		price = Decimal(raw)
	except InvalidOperation:
		raise ImproperlyConfigured(f"TOKEN_PRICE_USDT is not a number: {raw!r}")
	if not price.is_finite() or price <= 0:
		raise ImproperlyConfigured(f"TOKEN_PRICE_USDT must be positive, got {raw!r}")
	return price


TOKEN_PRICE_USDT = parse_token_price(os.getenv("TOKEN_PRICE_USDT", "1"))

RPC_URL = os.getenv("RPC_URL")
USDT_CONTRACT_ADDRESS = os.getenv("USDT_CONTRACT_ADDRESS")
NATIVE_TOKEN_CONTRACT_ADDRESS = os.getenv("NATIVE_TOKEN_CONTRACT_ADDRESS")
ADMIN_PRIVATE_KEY = os.getenv("ADMIN_PRIVATE_KEY")
ADMIN_ADDRESS = os.getenv("ADMIN_ADDRESS")

# "web3" for a real network, "stub" for the chain_stub tables
CHAIN_BACKEND = os.getenv("CHAIN_BACKEND", "web3")
# Seconds to wait for a mined receipt before giving up on a write
CHAIN_RECEIPT_TIMEOUT = int(os.getenv("CHAIN_RECEIPT_TIMEOUT", "120"))

PORT = int(os.getenv("PORT", "5001"))
#######################


INSTALLED_APPS = [
	"django.contrib.contenttypes",
	"corsheaders",
	# local apps
	"core",
	"api",
	"chain_stub",
]


MIDDLEWARE = [
	"django.middleware.security.SecurityMiddleware",
	"corsheaders.middleware.CorsMiddleware",
	"django.middleware.common.CommonMiddleware",
]


# The wallet front end is served from another origin
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if os.getenv("CORS_ALLOWED_ORIGINS") else []
CORS_ALLOW_ALL_ORIGINS = not CORS_ALLOWED_ORIGINS
CORS_ALLOW_HEADERS = ["accept", "content-type", "idempotency-key"]


ROOT_URLCONF = "token_sale.urls"
TEMPLATES = []


WSGI_APPLICATION = "token_sale.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")
if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD"),
            "HOST": os.getenv("POSTGRES_HOST"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOGGING = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
	},
	"handlers": {
		"console": {"class": "logging.StreamHandler", "formatter": "plain"},
	},
	"root": {"handlers": ["console"], "level": "WARNING"},
	"loggers": {
		"core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
		"api": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
		"chain_stub": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
	},
}


LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True


STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Sale constants: USDT has 6 decimals, the token 18. TOKEN_PRICE_USDT is parsed above.
TOKEN_DECIMALS = 18
USDT_DECIMALS = 6
