import os
from pathlib import Path
from dotenv import load_dotenv
import dj_database_url

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-default-key")

DEBUG = env_bool("DEBUG", True)

ALLOWED_HOSTS = ["*"]

# =============================
# Applications
# =============================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    "rest_framework",
    "rest_framework.authtoken",
    "corsheaders",

    "core.apps.CoreConfig",
    "shop.apps.ShopConfig",
    "reports.apps.ReportsConfig",
]

# =============================
# Middleware
# =============================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# =============================
# CORS
# =============================
CORS_ALLOW_ALL_ORIGINS = True

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]

CORS_ALLOW_HEADERS = [
    "content-type",
    "authorization",
    "accept",
    "origin",
    "x-requested-with",
    "x-csrftoken",
]

# =============================
# URLs / Templates
# =============================
ROOT_URLCONF = "billing_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "billing_backend.wsgi.application"

# =============================
# DATABASE (SQLite local | PostgreSQL when DATABASE_URL is set)
# =============================
DATABASE_URL = os.getenv("DATABASE_URL")

if DATABASE_URL:
    DATABASES = {
        "default": dj_database_url.parse(
            DATABASE_URL,
            conn_max_age=600,
            ssl_require=env_bool("DATABASE_SSL_REQUIRE", True),
        )
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# =============================
# Password Validators
# =============================
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# =============================
# DRF
# =============================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer",
    ],
    "EXCEPTION_HANDLER": "core.exceptions.api_exception_handler",
}

# =============================
# Outbound providers
# =============================
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

# Loyalty programme (cake category only)
LOYALTY_FREQUENCY = int(os.getenv("LOYALTY_FREQUENCY", "3"))
LOYALTY_DISCOUNT_PERCENTAGE = os.getenv("LOYALTY_DISCOUNT_PERCENTAGE", "10")
LOYALTY_CATEGORY_KEYWORD = os.getenv("LOYALTY_CATEGORY_KEYWORD", "cake")

# Bill numbering: "daily_sequence" | "random_suffix"
BILL_NUMBER_STRATEGY = os.getenv("BILL_NUMBER_STRATEGY", "daily_sequence")

# Invoice documents
BILL_SCRATCH_DIR = Path(os.getenv("BILL_SCRATCH_DIR", BASE_DIR / "temp"))
BILL_SCRATCH_MAX_AGE_SECONDS = int(os.getenv("BILL_SCRATCH_MAX_AGE_SECONDS", "3600"))
BILL_LOGO_URL = os.getenv(
    "BILL_LOGO_URL",
    "https://res.cloudinary.com/du4jhwpak/image/upload/v1765107523/"
    "WhatsApp_Image_2025-12-04_at_15.13.04_80e34f88_owuux1.jpg",
)
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "CakeRaft")
BUSINESS_TAGLINE = os.getenv("BUSINESS_TAGLINE", "Artisan Cake Creations")

# Object storage (Supabase Storage REST): "supabase" | "memory"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "supabase")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_BUCKET_NAME = os.getenv("SUPABASE_BUCKET_NAME", "invoices")
PDF_RETENTION_DAYS = int(os.getenv("PDF_RETENTION_DAYS", "30"))

# WhatsApp Cloud API
WHATSAPP_API_TOKEN = os.getenv("WHATSAPP_API_TOKEN")
WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
WHATSAPP_BASE_URL = os.getenv("WHATSAPP_BASE_URL", "https://graph.facebook.com/v18.0")
WHATSAPP_TEMPLATE_NAME = os.getenv("WHATSAPP_TEMPLATE_NAME", "hello_world")
WHATSAPP_TEMPLATE_LANGUAGE = os.getenv("WHATSAPP_TEMPLATE_LANGUAGE", "en_US")
WHATSAPP_TEST_MODE = env_bool("WHATSAPP_TEST_MODE", False)
WHATSAPP_WINDOW_DELAY_SECONDS = float(os.getenv("WHATSAPP_WINDOW_DELAY_SECONDS", "3"))
WHATSAPP_TEST_MODE_DELAY_SECONDS = float(os.getenv("WHATSAPP_TEST_MODE_DELAY_SECONDS", "2"))
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "91")

# =============================
# Celery
# =============================
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "Asia/Kolkata"

CELERY_BEAT_SCHEDULE = {
    "sweep-scratch-documents-hourly": {
        "task": "shop.tasks.sweep_scratch_documents",
        "schedule": 60.0 * 60,
    },
    "purge-stored-documents-daily": {
        "task": "shop.tasks.purge_expired_documents",
        "schedule": 60.0 * 60 * 24,
    },
}

# =============================
# Misc
# =============================
LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================
# Logging
# =============================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": True,
        },
        "core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "shop": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "reports": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
