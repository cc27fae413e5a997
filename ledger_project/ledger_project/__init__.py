# Loaded with Django so @shared_task binds to this app
# (workers: celery -A ledger_project worker -Q imports -l info)
from .celery import celery_app

__all__ = ("celery_app",)
