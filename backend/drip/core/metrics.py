"""Prometheus metrics for the application"""
from prometheus_client import Counter, Gauge, REGISTRY


def _counter(name: str, documentation: str, labels=()):
    """Create a counter, reusing the registered one when the module is re-imported"""
    try:
        return Counter(name, documentation, list(labels))
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Processor metrics
emails_processed_counter = _counter(
    'drip_emails_processed_total',
    'Total number of email jobs processed, by outcome',
    ['outcome']
)

# Cron metrics
cron_runs_counter = _counter(
    'drip_cron_runs_total',
    'Total number of cron job runs',
    ['job', 'status']
)

# Scheduler metrics
jobs_scheduled_counter = _counter(
    'drip_jobs_scheduled_total',
    'Total number of email jobs created (existing pending jobs are not counted)',
    ['campaign']
)

stale_jobs_recycled_counter = _counter(
    'drip_stale_jobs_recycled_total',
    'Total number of PROCESSING jobs recovered after the staleness timeout',
    ['result']
)

# Unsubscribe metrics
unsubscribes_counter = _counter(
    'drip_unsubscribes_total',
    'Total number of processed unsubscribe requests',
    ['campaign']
)


def _gauge(name: str, documentation: str, labels=()):
    try:
        return Gauge(name, documentation, list(labels))
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Queue depth (refreshed on each /metrics scrape)
email_jobs_by_status_gauge = _gauge(
    'drip_email_jobs',
    'Current number of email jobs by status',
    ['status']
)


def update_email_job_gauges(db):
    """Refresh the job status gauge from the database"""
    from sqlalchemy import func
    from drip.models.email_job import EmailJob, EmailJobStatus

    counts = dict(db.query(EmailJob.status, func.count()).group_by(EmailJob.status).all())
    for status in EmailJobStatus:
        email_jobs_by_status_gauge.labels(status=status.value).set(counts.get(status.value, 0))
