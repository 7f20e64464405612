#!/usr/bin/env python3
"""Sidecar entrypoint for the Raft ops monitor."""

import argparse
import asyncio
import logging
import os
from typing import List, Optional

import probe_metrics
from monitor_config import DEFAULT_CONFIG_PATH, ConfigError, OpsMonitorConfig, load_config
from ops_monitor import OpsMonitor
from readiness import HttpReadinessProbe

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe a node's Raft module and wipe its state when leaderless")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the JSON config file")
    parser.add_argument("--enable", action="store_true", help="Run even if the config leaves the monitor disabled")
    parser.add_argument("--retries", type=int, help="Override the maximum number of probe attempts")
    return parser.parse_args(argv)


async def run_monitor(config: OpsMonitorConfig) -> None:
    probe = HttpReadinessProbe(config.readiness_url, timeout=config.request_timeout)
    monitor = OpsMonitor(config, is_started=probe.is_started, health_checker=probe.check)

    logger.info("Starting ops monitor for node at %s", config.base_url)
    result = await monitor.run()
    logger.info("Ops monitor finished after %s/%s attempts", result.attempts, result.max_attempts)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
        if args.enable:
            config.enabled = True
        if args.retries is not None:
            config.max_retries = args.retries
            config.validate()
    except ConfigError as e:
        logger.error("Invalid ops monitor configuration: %s", e)
        return 2

    if not config.enabled:
        logger.info("[ops monitor]ops monitor is disabled")
        return 0

    if config.metrics_port:
        probe_metrics.start_metrics_server(config.metrics_port)

    # SystemExit(100) from the recovery action propagates out of asyncio.run
    asyncio.run(run_monitor(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
