import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "billing_backend.settings")

app = Celery("billing_backend")

# CELERY_* settings, including the beat schedule for scratch and storage cleanup
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
