import os
from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'app.settings')

app = Celery('inventa')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

app.conf.update(
    task_track_started=True,
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    enable_utc=True,

    task_routes={
        'accounts.tasks.*': {'queue': 'notifications'},
        'inventory.tasks.*': {'queue': 'inventory'},
    },

    beat_schedule={
        'purge-read-notifications': {
            'task': 'accounts.tasks.purge_read_notifications',
            'schedule': 86400.0,  # Run daily
        },
        'check-low-warehouse-stock': {
            'task': 'inventory.tasks.check_low_warehouse_stock',
            'schedule': 21600.0,  # Run every 6 hours
        },
    },
)
