"""
Celery configuration for the marketplace payment service.

Background work in this service is limited to money-adjacent jobs:
- Re-processing gateway webhooks that failed on first delivery
- Dispatching carrier shipments from the shipment outbox
- Sweeping escrows whose inspection window has elapsed

Periodic schedules live in the database (django-celery-beat) and are created
by data migrations, so the beat process only needs the DatabaseScheduler.

Usage:
    celery -A config worker -Q default,payments,shipping -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("marketplace")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Carrier calls are slow and must never starve webhook/escrow processing
app.conf.task_default_queue = "default"
app.conf.task_routes = {
    "payments.tasks.*": {"queue": "payments"},
    "orders.workers.escrow_sweeper.*": {"queue": "payments"},
    "orders.tasks.*": {"queue": "shipping"},
}

app.autodiscover_tasks()
app.autodiscover_tasks(["orders.workers"], related_name="escrow_sweeper")
