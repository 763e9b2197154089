from .base import *

# Development specific settings
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

LOGGING["loggers"]["apps.personalization"]["level"] = "DEBUG"

# Make Celery tasks run synchronously in development for easier debugging (optional)
# CELERY_TASK_ALWAYS_EAGER = True
# CELERY_TASK_EAGER_PROPAGATES = True
