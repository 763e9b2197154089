import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "personalization_backend.settings")

app = Celery("personalization_backend")

# Read CELERY_* keys from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Pick up tasks.py from every installed app
app.autodiscover_tasks()
