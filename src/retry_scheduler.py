#!/usr/bin/env python3
"""
Bounded retry loop around the marker probe
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional
import logging

from marker_probe import ProbeOutcome

logger = logging.getLogger(__name__)


class ProbeState(Enum):
    IDLE = "idle"
    PROBING = "probing"
    DONE = "done"


@dataclass
class RetryBudget:
    max_attempts: int = 20
    interval: float = 3.0
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def consume(self) -> int:
        self.attempt += 1
        return self.attempt


@dataclass
class ProbeRunResult:
    """How a probe run ended.

    ``succeeded`` is also True when the loop stopped on a terminal failure:
    only a run that kept seeing a missing leader until the budget ran out
    counts as failed.
    """
    succeeded: bool
    attempts: int
    max_attempts: int
    last_outcome: Optional[ProbeOutcome] = None


class RetryScheduler:
    """Drives the probe until it stops being retryable or the budget runs out"""

    def __init__(self, probe: Callable[[], Awaitable[ProbeOutcome]], budget: RetryBudget,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.probe = probe
        self.budget = budget
        self.sleep = sleep
        self.state = ProbeState.IDLE

    async def run(self) -> ProbeRunResult:
        budget = self.budget
        succeeded = False
        outcome = None

        while self.state is not ProbeState.DONE:
            # IDLE: wait one interval before every attempt, the first included
            await self.sleep(budget.interval)

            self.state = ProbeState.PROBING
            attempt = budget.consume()
            logger.info(f"[ops monitor]start to probe, try {attempt}/{budget.max_attempts}")
            outcome = await self._probe_once()

            if outcome is ProbeOutcome.RETRYABLE_FAILURE and not budget.exhausted:
                self.state = ProbeState.IDLE
                continue

            succeeded = outcome is not ProbeOutcome.RETRYABLE_FAILURE
            self.state = ProbeState.DONE

        logger.info(f"probe result: {succeeded}, try: {budget.attempt}/{budget.max_attempts}")
        return ProbeRunResult(succeeded, budget.attempt, budget.max_attempts, outcome)

    async def _probe_once(self) -> ProbeOutcome:
        try:
            return await self.probe()
        except Exception as e:
            logger.error(f"[ops monitor]probe raised unexpectedly, treating as terminal: {e}")
            return ProbeOutcome.TERMINAL_FAILURE
