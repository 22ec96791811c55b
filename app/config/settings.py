"""
Django settings for the checkout service.

One settings module serves every environment. Values come from environment
variables read through django-environ; a local .env file is loaded when
present (path overridable with ENV_FILE).

Sections:
    - Environment and core settings
    - Applications, middleware, templates
    - Database and cache (Postgres + Redis in deployments)
    - REST framework and OpenAPI
    - MercadoPago gateway and checkout behaviour
    - Logging
    - Production hardening

Reference:
https://docs.djangoproject.com/en/5.2/ref/settings/
"""

import os
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# Environment
# =============================================================================
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, []),
    LOG_LEVEL=(str, "INFO"),
    GATEWAY_LOG_LEVEL=(str, "INFO"),
    EXCLUDED_PAYMENT_METHODS=(list, []),
    EXCLUDED_PAYMENT_TYPES=(list, []),
)

env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

SECRET_KEY = env("SECRET_KEY", default="django-insecure-checkout-dev-only")
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# Applications
# =============================================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party
    "rest_framework",
    "corsheaders",
    "drf_spectacular",
    # Project
    "core",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# Only the admin renders templates
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# =============================================================================
# Database & Cache
# =============================================================================
# Deployments point DATABASE_URL at Postgres, where select_for_update()
# row locks serialize concurrent reconciliations of one payment.
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Redis also holds the refund locks (payments.locks.DistributedLock)
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://redis:6379/0"),
        "KEY_PREFIX": "checkout",
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            "IGNORE_EXCEPTIONS": True,
        },
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = env("STATIC_URL", default="/static/")
STATIC_ROOT = BASE_DIR / "staticfiles"

# =============================================================================
# REST Framework & OpenAPI
# =============================================================================
# Buyers are anonymous and the gateway posts without credentials, so the
# API runs without authentication and relies on anonymous throttling.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": ["rest_framework.throttling.AnonRateThrottle"],
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("API_ANON_THROTTLE_RATE", default="300/hour"),
    },
    "UNAUTHENTICATED_USER": None,
}

if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append(
        "rest_framework.renderers.BrowsableAPIRenderer"
    )

SPECTACULAR_SETTINGS = {
    "TITLE": "Checkout Payments API",
    "DESCRIPTION": (
        "Order checkout through MercadoPago preferences, webhook "
        "reconciliation of payment status, and refunds."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SCHEMA_PATH_PREFIX": r"/api/v[0-9]+",
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
}

CORS_ALLOWED_ORIGINS = env("CORS_ALLOWED_ORIGINS")

# =============================================================================
# MercadoPago
# =============================================================================
# TEST- tokens talk to the sandbox, APP_USR- tokens to production
MERCADOPAGO_ACCESS_TOKEN = env("MERCADOPAGO_ACCESS_TOKEN", default="")
MERCADOPAGO_PUBLIC_KEY = env("MERCADOPAGO_PUBLIC_KEY", default="")
MERCADOPAGO_API_BASE_URL = env(
    "MERCADOPAGO_API_BASE_URL", default="https://api.mercadopago.com"
)
MERCADOPAGO_API_TIMEOUT_SECONDS = env.float(
    "MERCADOPAGO_API_TIMEOUT_SECONDS", default=5.0
)

# Signs x-signature on notifications; empty accepts them with a warning
MERCADOPAGO_WEBHOOK_SECRET = env("MERCADOPAGO_WEBHOOK_SECRET", default="")

# Staleness bound for signed notifications; None disables the check
MERCADOPAGO_WEBHOOK_MAX_AGE_SECONDS = env.int(
    "MERCADOPAGO_WEBHOOK_MAX_AGE_SECONDS", default=None
)

# =============================================================================
# Checkout
# =============================================================================
FRONTEND_URL = env("FRONTEND_URL", default="http://localhost:3001")
BACKEND_URL = env("BACKEND_URL", default="http://localhost:8000")

PREFERENCE_EXPIRATION_DAYS = env.int("PREFERENCE_EXPIRATION_DAYS", default=30)
EXCLUDED_PAYMENT_METHODS = env("EXCLUDED_PAYMENT_METHODS")
EXCLUDED_PAYMENT_TYPES = env("EXCLUDED_PAYMENT_TYPES")
MAX_INSTALLMENTS = env.int("MAX_INSTALLMENTS", default=12)
DEFAULT_CURRENCY = env("DEFAULT_CURRENCY", default="ARS")
STATEMENT_DESCRIPTOR = env("STATEMENT_DESCRIPTOR", default="COMPRA ONLINE")

REFUND_LOCK_TTL_SECONDS = env.int("REFUND_LOCK_TTL_SECONDS", default=30)
REFUND_LOCK_TIMEOUT_SECONDS = env.float("REFUND_LOCK_TIMEOUT_SECONDS", default=10.0)

# =============================================================================
# Logging
# =============================================================================
# Services log with extra={...}; the file handler keeps a rotating history
# next to the app for containers without a log collector.
LOG_LEVEL = env("LOG_LEVEL")
LOG_DIR = Path(env("LOG_DIR", default=str(BASE_DIR / "logs")))
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "{asctime} {levelname:<8} {name}: {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} pid={process:d} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / env("LOG_FILE_NAME", default="checkout.log"),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {"handlers": ["console", "file"], "level": LOG_LEVEL},
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console", "file"],
            "level": "ERROR",
            "propagate": False,
        },
        "core": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "payments": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        # Request/response timings of every gateway call
        "payments.adapters": {
            "handlers": ["console", "file"],
            "level": env("GATEWAY_LOG_LEVEL"),
            "propagate": False,
        },
    },
}

# =============================================================================
# Production Hardening
# =============================================================================
if not DEBUG:
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=31536000)
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    X_FRAME_OPTIONS = "DENY"
