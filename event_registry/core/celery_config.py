from celery import Celery

from event_registry.core.redis_config import get_redis_url

# Modules a worker imports at startup so it knows every task.
TASK_MODULES = ["event_registry.tasks"]


def make_celery(app_name: str = "event_registry") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=TASK_MODULES)
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    # Requeue audits if a worker dies mid-task.
    celery.conf.task_acks_late = True
    celery.conf.worker_prefetch_multiplier = 1
    return celery


celery_app = make_celery()
