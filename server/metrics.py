"""
Prometheus Metrics Module

Provides instrumentation for ballot intake and the API:
- Submission outcomes (counted, duplicate, rejected)
- Errors by component
- API request counts and latency

Usage:
    from server.metrics import metrics
    metrics.submissions.labels(outcome="counted").inc()
"""

from prometheus_client import Counter, Histogram, generate_latest, REGISTRY


class BallotMetrics:
    """Centralized metrics for intake and API"""

    def __init__(self):
        # Intake metrics
        self.submissions = Counter(
            'ballot_submissions_total',
            'Ballot submissions by outcome',
            ['outcome']  # counted, duplicate, rejected
        )

        self.rejections = Counter(
            'ballot_rejections_total',
            'Rejected submissions by error code',
            ['error_code']  # BAD_JSON, VALIDATION_FAILED, WINDOW_CLOSED
        )

        # API metrics
        self.api_requests = Counter(
            'ballot_api_requests_total',
            'Total API requests',
            ['endpoint', 'method', 'status_code']
        )

        self.api_request_duration = Histogram(
            'ballot_api_request_duration_seconds',
            'API request duration',
            ['endpoint', 'method'],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
        )

        # Error metrics
        self.errors = Counter(
            'ballot_errors_total',
            'Total errors by component and type',
            ['component', 'error_type']
        )

    def record_error(self, component: str, error: Exception):
        """Record error with component context"""
        self.errors.labels(component=component, error_type=type(error).__name__).inc()


# Global metrics instance
metrics = BallotMetrics()


def get_metrics_text() -> bytes:
    """Get Prometheus metrics in text format for /metrics endpoint"""
    return generate_latest(REGISTRY)
