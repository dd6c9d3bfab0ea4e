""" Run workers with "celery -A school_project worker -l info"
    The -A school_project means:
    Import school_project/__init__.py →
    which exposes celery_app → Celery discovers school_core.tasks. """
from __future__ import annotations
import os
from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "school_project.settings")

celery_app = Celery("school_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()
