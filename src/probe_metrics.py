#!/usr/bin/env python3
"""
Prometheus metrics for the Raft ops monitor
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

probe_attempts = Counter(
    'ops_monitor_probe_attempts_total',
    'Marker registration attempts by classified outcome',
    ['outcome'],
    registry=REGISTRY
)

cleanup_failures = Counter(
    'ops_monitor_cleanup_failures_total',
    'Marker deletions that failed and were ignored',
    registry=REGISTRY
)

recoveries = Counter(
    'ops_monitor_recoveries_total',
    'Raft data directory wipes triggered by the monitor',
    registry=REGISTRY
)

last_run_succeeded = Gauge(
    'ops_monitor_last_run_succeeded',
    '1 if the last probe run finished without needing recovery',
    registry=REGISTRY
)


def start_metrics_server(port: int) -> bool:
    """Expose the monitor registry over HTTP"""
    try:
        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")
        return True
    except OSError as e:
        logger.error(f"Failed to start Prometheus metrics server: {e}")
        return False
