"""
Celery application configuration for story-search.

Uses Redis as the message broker. Only the re-embedding task runs here;
request handling never waits on the queue.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.development")

app = Celery("story_search")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks in all INSTALLED_APPS
app.autodiscover_tasks()
