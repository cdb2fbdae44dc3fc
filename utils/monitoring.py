"""
Monitoring and Observability
Prometheus metrics for HTTP traffic and reconciliation runs
"""

import logging

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from models.transaction import ReconciliationResult

logger = logging.getLogger(__name__)

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

reconciliation_runs = Counter(
    'reconciliation_runs_total',
    'Total reconciliation runs',
    ['entrypoint']
)

reconciliation_duration = Histogram(
    'reconciliation_duration_seconds',
    'Time spent matching invoices against payments',
    ['entrypoint']
)

reconciliation_matches = Counter(
    'reconciliation_matches_total',
    'Total invoice/payment pairs produced',
    ['match_type']
)

skipped_records = Counter(
    'reconciliation_skipped_records_total',
    'Rows excluded because they could not be parsed',
    ['source']
)


def register_monitoring_routes(app):
    """Register monitoring routes with Flask app"""

    @app.route('/metrics', methods=['GET'])
    def metrics():
        """Prometheus metrics endpoint"""
        return generate_latest(), 200, {'Content-Type': CONTENT_TYPE_LATEST}

    logger.info("Monitoring routes registered at /metrics")


def track_request(method: str, endpoint: str, status: int, duration: float):
    """Track HTTP request metrics"""
    request_count.labels(method=method, endpoint=endpoint, status=status).inc()
    request_duration.labels(method=method, endpoint=endpoint).observe(duration)


def track_reconciliation(result: ReconciliationResult, duration: float, entrypoint: str = "api"):
    """Track a finished reconciliation run"""
    reconciliation_runs.labels(entrypoint=entrypoint).inc()
    reconciliation_duration.labels(entrypoint=entrypoint).observe(duration)
    reconciliation_matches.labels(match_type="ExactMatch").inc(result.exact_match_count)
    reconciliation_matches.labels(match_type="AmountOnlyMatch").inc(result.amount_only_match_count)
    for record in result.skipped:
        skipped_records.labels(source=record.source).inc()
