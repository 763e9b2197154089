from .base import *

# Test settings: in-memory database and cache, eager celery, no text generation
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "personalization-tests",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PERSONALIZATION = {
    **PERSONALIZATION,
    "TEXT_GENERATION": {"PROVIDER": None},
}

LOGGING["loggers"]["apps.personalization"]["level"] = "WARNING"
