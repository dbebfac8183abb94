"""
Add celery-beat schedules for escrow release and shipment retries.

- process_expired_escrows: every 15 minutes
- retry_pending_shipments: every 10 minutes
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Process Expired Escrows",
        "task": "orders.workers.escrow_sweeper.process_expired_escrows",
        "every": 15,
        "description": (
            "Finds orders whose inspection period has ended and releases "
            "their escrow to the seller."
        ),
    },
    {
        "name": "Retry Pending Shipments",
        "task": "orders.tasks.retry_pending_shipments",
        "every": 10,
        "description": "Re-queues carrier shipment requests that are due for another attempt.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name__in=[entry["name"] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("orders", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
