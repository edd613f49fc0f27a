from datetime import timedelta

from celery import Celery, Task
from celery.schedules import crontab
from kombu import Queue


def celery_init_app(app):
    """
    Build the Celery app for ``app``; tasks run inside its app context.
    """

    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.conf.update(
        # Serialization
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],

        # Timezone
        timezone="UTC",
        enable_utc=True,

        # Reliability settings
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_reject_on_worker_lost=True,

        # Routing
        task_default_queue="default",
        task_queues=(
            Queue("default"),
            Queue("reconciliation"),
        ),
        task_routes={
            "biblioteca.workers.reconciliation.*": {"queue": "reconciliation"},
        },

        # Time limits
        task_time_limit=300,
        task_soft_time_limit=240,

        beat_schedule=build_beat_schedule(app.config["RECONCILE_INTERVAL_MINUTES"]),
    )
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app


def build_beat_schedule(interval_minutes):
    interval_minutes = int(interval_minutes)
    if interval_minutes < 1:
        raise ValueError("RECONCILE_INTERVAL_MINUTES must be a positive integer")

    # A */N crontab step is only evenly spaced when N divides the hour.
    if interval_minutes < 60 and 60 % interval_minutes == 0:
        schedule = crontab(minute=f"*/{interval_minutes}")
    else:
        schedule = timedelta(minutes=interval_minutes)

    return {
        "reconcile-pending-payments": {
            "task": "biblioteca.workers.reconciliation.reconcile_pending_payments_task",
            "schedule": schedule,
        },
    }
