#!/usr/bin/env python3
"""
Readiness gate for the Raft ops monitor
Waits for the host node to report itself started before probing
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union
import logging

import aiohttp

logger = logging.getLogger(__name__)

StartedSignal = Callable[[], Union[bool, Awaitable[bool]]]


@dataclass
class ReadinessResult:
    """Module health report taken once the node has started"""
    success: bool
    message: str


HealthChecker = Callable[[], Awaitable[ReadinessResult]]


class ReadinessGate:
    """Blocks until the host service has started.

    The host hands over either an ``asyncio.Event`` it sets once started, or an
    ``is_started`` callable (plain or coroutine function) that is polled every
    ``poll_interval`` seconds. There is no timeout.
    """

    def __init__(self, started_event: Optional[asyncio.Event] = None,
                 is_started: Optional[StartedSignal] = None,
                 poll_interval: float = 1.0,
                 health_checker: Optional[HealthChecker] = None):
        if started_event is None and is_started is None:
            raise ValueError("ReadinessGate needs a started_event or an is_started callable")
        self.started_event = started_event
        self.is_started = is_started
        self.poll_interval = poll_interval
        self.health_checker = health_checker

    async def wait_until_ready(self) -> Optional[ReadinessResult]:
        """Return once the host is started, plus the module health report if any"""
        if self.started_event is not None:
            if not self.started_event.is_set():
                logger.info("[ops monitor]waiting for node started...")
            await self.started_event.wait()
        else:
            while not await self._poll():
                logger.info("[ops monitor]waiting for node started...")
                await asyncio.sleep(self.poll_interval)

        return await self._report_health()

    async def _poll(self) -> bool:
        started = self.is_started()
        if inspect.isawaitable(started):
            started = await started
        return bool(started)

    async def _report_health(self) -> Optional[ReadinessResult]:
        if self.health_checker is None:
            return None
        try:
            result = await self.health_checker()
        except Exception as e:
            logger.warning(f"[ops monitor]module health check failed: {e}")
            return None
        logger.info(f"[ops monitor]module health result: {result.message}")
        return result


class HttpReadinessProbe:
    """Treats a 2xx from the node's readiness endpoint as "started"."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def check(self) -> ReadinessResult:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.url) as response:
                    body = await response.text()
                    return ReadinessResult(200 <= response.status < 300,
                                           f"{response.status} {body}".strip())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Readiness endpoint {self.url} not reachable: {e}")
            return ReadinessResult(False, str(e) or e.__class__.__name__)

    async def is_started(self) -> bool:
        return (await self.check()).success
