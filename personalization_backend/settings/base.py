import os
from pathlib import Path

import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-personalization-dev-key")

DEBUG = os.getenv("DEBUG", "False") == "True"

ALLOWED_HOSTS = []


INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    # Local apps
    "apps.common",
    "apps.personalization",
]


# Database
# Configured from DATABASE_URL, falls back to a local SQLite file
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache
# Learning profiles are cached here with a one hour TTL
CACHE_URL = os.getenv("CACHE_URL", "")

if CACHE_URL.startswith("redis://") or CACHE_URL.startswith("rediss://"):
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": CACHE_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "personalization",
        }
    }


# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "generate-daily-recommendations": {
        "task": "personalization.generate_recommendations",
        "schedule": 60 * 60 * 24,
    },
    "cleanup-expired-recommendations": {
        "task": "personalization.cleanup_expired_recommendations",
        "schedule": 60 * 60 * 24 * 7,
    },
}


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "apps.personalization": {
            "handlers": ["console"],
            "level": os.getenv("PERSONALIZATION_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}


# Personalization engine
# Keys missing here fall back to apps.personalization.conf.DEFAULTS
PERSONALIZATION = {
    "PROFILE_CACHE_TTL": int(os.getenv("PROFILE_CACHE_TTL", 3600)),
    "RECOMMENDATION_TTL_DAYS": int(os.getenv("RECOMMENDATION_TTL_DAYS", 7)),
    "BATCH_CONCURRENCY": int(os.getenv("PERSONALIZATION_BATCH_CONCURRENCY", 5)),
    "TEXT_GENERATION": {
        "PROVIDER": os.getenv("TEXT_GENERATION_PROVIDER") or None,
        "MODEL_ID": os.getenv("TEXT_GENERATION_MODEL_ID", "gpt-4o-mini"),
        "API_KEY": os.getenv("TEXT_GENERATION_API_KEY"),
        "BASE_URL": os.getenv("TEXT_GENERATION_BASE_URL"),
        "TIMEOUT_SECONDS": float(os.getenv("TEXT_GENERATION_TIMEOUT", 10)),
    },
}
