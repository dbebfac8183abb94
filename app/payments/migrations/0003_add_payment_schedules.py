"""
Add celery-beat schedules for payment maintenance tasks.

- retry_failed_webhooks: every 5 minutes
- expire_stale_intents: hourly
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Retry Failed Gateway Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 5,
        "period": "minutes",
        "description": "Re-queues failed webhook deliveries below the retry limit.",
    },
    {
        "name": "Expire Stale Payment Intents",
        "task": "payments.tasks.expire_stale_intents",
        "every": 1,
        "period": "hours",
        "description": "Fails card and hybrid checkouts that never received a gateway confirmation.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
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
        ("payments", "0002_wallettransaction_order"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
