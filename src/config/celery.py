"""
Celery application for the meal ordering service.

DJANGO_SETTINGS_MODULE is set before the app is created so Celery reads
its configuration from the Django settings (``CELERY_`` prefix).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("meals")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up tasks.py in every installed app (orders.purge_stale_drafts)
app.autodiscover_tasks()
