"""
Celery Configuration for Async Task Processing
Runs large reconciliations outside the request/response cycle
"""

from celery import Celery

from config import REDIS_URL

celery_app = Celery(
    'invoice_payment_recon',
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=['tasks.reconciliation_tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
)

if __name__ == '__main__':
    celery_app.start()
