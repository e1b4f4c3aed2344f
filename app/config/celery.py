"""
Celery configuration for the chat backend.

Celery runs periodic maintenance for the chat app (message retention purge,
see chat.tasks). The schedule itself lives in settings.CELERY_BEAT_SCHEDULE,
so `celery -A config beat` needs no database scheduler.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("chatcore")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up chat.tasks and any other installed app's tasks.py
app.autodiscover_tasks()
