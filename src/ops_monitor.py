#!/usr/bin/env python3
"""
Raft Ops Monitor
Post-startup watchdog that checks the node's Raft module can elect a leader and
commit, and wipes the Raft state when it stays leaderless
"""

import asyncio
from typing import Callable, Awaitable, Optional
import logging

import aiohttp

import probe_metrics
from marker_probe import MarkerCleaner, MarkerRecord, MarkerRegistrar, build_headers
from monitor_config import OpsMonitorConfig
from raft_recovery import RecoveryAction, RecoveryTarget
from readiness import HealthChecker, ReadinessGate, StartedSignal
from retry_scheduler import ProbeRunResult, RetryBudget, RetryScheduler

logger = logging.getLogger(__name__)


class OpsMonitor:
    """Runs one probe pass in a background task once the host node has started"""

    def __init__(self, config: OpsMonitorConfig,
                 started_event: Optional[asyncio.Event] = None,
                 is_started: Optional[StartedSignal] = None,
                 health_checker: Optional[HealthChecker] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config
        self.started_event = started_event
        self.is_started = is_started
        self.health_checker = health_checker
        self.sleep = sleep
        self.recovery = RecoveryAction(RecoveryTarget(config.node_home))
        self.task: Optional[asyncio.Task] = None

    def start(self) -> Optional[asyncio.Task]:
        """Lifecycle hook: spawn the monitor task once the host is wired up.

        Must be called from within a running event loop. Returns None when the
        monitor is disabled.
        """
        if not self.config.enabled:
            logger.info("[ops monitor]ops monitor is disabled")
            return None
        if self.task is not None:
            return self.task
        if self.started_event is None and self.is_started is None:
            raise ValueError("OpsMonitor needs a started_event or an is_started callable")

        logger.info("[ops monitor]ops monitor is enabled")
        self.task = asyncio.get_running_loop().create_task(self.run(), name="ops-monitor")
        self.task.add_done_callback(self._log_task_failure)
        return self.task

    @staticmethod
    def _log_task_failure(task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, Exception):
            logger.error("[ops monitor]ops monitor task failed: %s", exc, exc_info=exc)

    async def stop(self):
        """Cancel the monitor task if it has not finished yet"""
        if self.task is None or self.task.done():
            return
        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            logger.info("[ops monitor]ops monitor cancelled")

    async def run(self) -> ProbeRunResult:
        """Wait for readiness, probe, clean up, and recover if the probe never got through"""
        gate = ReadinessGate(started_event=self.started_event,
                             is_started=self.is_started,
                             poll_interval=self.config.poll_interval,
                             health_checker=self.health_checker)
        await gate.wait_until_ready()

        result = await self._probe()
        probe_metrics.last_run_succeeded.set(1 if result.succeeded else 0)

        if not result.succeeded:
            self.recovery.execute()
        return result

    async def _probe(self) -> ProbeRunResult:
        config = self.config
        record = MarkerRecord()
        headers = build_headers(config.user_agent, config.auth_identity)
        timeout = aiohttp.ClientTimeout(total=config.request_timeout)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            registrar = MarkerRegistrar(session, config.instance_url, headers, record)
            scheduler = RetryScheduler(registrar.register,
                                       RetryBudget(config.max_retries, config.probe_interval),
                                       sleep=self.sleep)
            try:
                return await scheduler.run()
            finally:
                await MarkerCleaner(session, config.instance_url, headers, record).cleanup()
