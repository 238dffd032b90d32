"""
Celery application for the Torashout booking engine.

Runs the periodic due-date sweep that cancels bookings whose talent did not
deliver in time.
"""

import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "torashout_engine.settings")

app = Celery("torashout")

app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

app.conf.beat_schedule = {
    "cancel-overdue-bookings": {
        "task": "marketplace.tasks.cancel_overdue_bookings",
        "schedule": crontab(minute="*/15"),
    },
}
