"""Celery beat schedule configuration.

Entries follow the layout of the Celery docs so new periodic jobs can be
added by copying one of them.
"""
from __future__ import annotations

from celery.schedules import crontab

CELERY_BEAT_SCHEDULE = {
    # Apply succeeded charges whose order was created after the webhook arrived
    "payments-link-orphans": {
        "task": "payments.link_orphan_payments",
        "schedule": 300,  # every 5 minutes
    },
    # Drop processed ledger rows past the retention window
    "payments-purge-event-ledger": {
        "task": "payments.purge_event_ledger",
        "schedule": crontab(hour=3, minute=15),
    },
}
