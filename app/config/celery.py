"""
Celery configuration for the escrow payments backend.

Runs the periodic escrow jobs (auto-release sweep, reconciliation,
webhook retry and cleanup) and the async webhook processor. Periodic
schedules live in settings.CELERY_BEAT_SCHEDULE and are stored by
django-celery-beat's DatabaseScheduler.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info --scheduler django_celery_beat.schedulers:DatabaseScheduler
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Finds payments.tasks (which re-exports the worker tasks)
app.autodiscover_tasks()
