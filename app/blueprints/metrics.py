"""
Prometheus metrics blueprint for observability.

Exposes /metrics endpoint with HTTP request metrics and tenant store
cache metrics. This endpoint should be restricted to internal network or
monitoring systems only.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Check if running in multi-process mode (Gunicorn)
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

# Use multiprocess registry in production with Gunicorn
if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=registry if not MULTIPROCESS_MODE else None
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=registry if not MULTIPROCESS_MODE else None,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    registry=registry if not MULTIPROCESS_MODE else None
)


class TenantStoreCollector:
    """
    Reads the tenant store registry at scrape time.

    Registered once per process; the app factory points it at the
    registry of the current app.
    """

    def __init__(self):
        self.stores = None

    def collect(self):
        if self.stores is None:
            return
        stats = self.stores.stats()

        yield GaugeMetricFamily(
            'tenant_stores_open', 'Tenant store handles currently cached', value=stats['open'])
        yield GaugeMetricFamily(
            'tenant_stores_capacity', 'Configured tenant store cache capacity', value=stats['capacity'])

        leased = GaugeMetricFamily(
            'tenant_store_leases', 'Active leases per cached tenant store', labels=['tenant'])
        for store in stats['stores']:
            leased.add_metric([store['tenant']], store['in_use'])
        yield leased

        yield CounterMetricFamily(
            'tenant_store_opens', 'Tenant and registry stores opened', value=stats['opens_total'])
        yield CounterMetricFamily(
            'tenant_store_closes', 'Tenant store handles closed (eviction, release, shutdown)',
            value=stats['closes_total'])


tenant_store_collector = TenantStoreCollector()
registry.register(tenant_store_collector)


def setup_metrics_instrumentation(app):
    """
    Setup before_request and after_request hooks for automatic metrics collection.

    This should be called from app factory after the tenant store
    registry is created.
    """
    tenant_store_collector.stores = app.extensions.get('tenant_stores')

    @app.before_request
    def before_request_metrics():
        """Record request start time and increment in-flight counter."""
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        """Record request metrics after response is ready."""
        try:
            # Calculate request duration
            if hasattr(g, '_prometheus_metrics_start_time'):
                duration = time.time() - g._prometheus_metrics_start_time

                # Get endpoint name (e.g., 'proof_of_life.create')
                endpoint = request.endpoint or 'unknown'
                method = request.method
                status = response.status_code

                # Record metrics
                http_request_duration_seconds.labels(
                    method=method,
                    endpoint=endpoint
                ).observe(duration)

                http_requests_total.labels(
                    method=method,
                    endpoint=endpoint,
                    http_status=status
                ).inc()

                http_requests_in_flight.dec()
        except Exception as e:
            # Don't break request flow if metrics fail
            app.logger.warning(f"Failed to record metrics: {e}")

        return response


@metrics_bp.route('/metrics')
def metrics():
    """
    Prometheus metrics endpoint.

    SECURITY NOTE:
    - This endpoint is NOT authenticated
    - Should be restricted by network/firewall rules in production

    Returns:
        Response: Prometheus-formatted metrics in text/plain
    """
    data = generate_latest(registry)
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
