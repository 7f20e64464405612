#!/usr/bin/env python3
"""Container health check against the node's readiness endpoint."""

import asyncio
import logging
import os

from monitor_config import ConfigError, load_config
from readiness import HttpReadinessProbe

logger = logging.getLogger(__name__)
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

async def _check_node() -> bool:
    try:
        config = load_config(os.getenv("OPS_MONITOR_CONFIG", "config/ops_monitor.json"))
    except ConfigError as e:
        logger.error("Invalid ops monitor configuration for healthcheck: %s", e)
        return False
    result = await HttpReadinessProbe(config.readiness_url, timeout=config.request_timeout).check()
    if not result.success:
        logger.warning("Node at %s not ready: %s", config.base_url, result.message)
    return result.success

async def _main() -> None:
    if not await _check_node():
        raise SystemExit(1)

if __name__ == "__main__":
    asyncio.run(_main())
