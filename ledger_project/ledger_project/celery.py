import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ledger_project.settings")

celery_app = Celery("ledger_project")

# CELERY_* entries in Django settings
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# Staging syncs are long and write-heavy; keep them off the default queue
celery_app.conf.task_routes = {
    "ledger_core.tasks.sync_staging_import": {"queue": "imports"},
}
# a sync that dies mid-batch is re-delivered; rows already applied come back as duplicates
celery_app.conf.task_acks_late = True
celery_app.conf.worker_prefetch_multiplier = 1

celery_app.autodiscover_tasks()
