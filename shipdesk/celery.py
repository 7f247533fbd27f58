"""
Celery application.
Beat schedule lives in settings (CELERY_BEAT_SCHEDULE); dev settings run
tasks eagerly so no broker is needed.
"""

import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "shipdesk.settings_dev")

app = Celery("shipdesk")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
