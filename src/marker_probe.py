#!/usr/bin/env python3
"""
Marker instance probe
Writes a synthetic persistent instance through the node's own API to check
that the Raft module has a leader and can commit, and removes it afterwards
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict
import logging

import aiohttp

import probe_metrics
from monitor_config import AuthIdentity

logger = logging.getLogger(__name__)

LEADER_NOT_FOUND = "did not find the Leader node"


class ProbeOutcome(Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"


@dataclass(frozen=True)
class MarkerRecord:
    """Identity of the probe instance. Persistent, so the write goes through Raft."""
    ip: str = "localhost"
    port: int = 52520
    service_name: str = "test-persistent-instance-server"
    ephemeral: bool = False

    def to_params(self) -> Dict[str, str]:
        return {
            "ip": self.ip,
            "port": str(self.port),
            "serviceName": self.service_name,
            "ephemeral": "true" if self.ephemeral else "false",
        }


def build_headers(user_agent: str, identity: AuthIdentity) -> Dict[str, str]:
    """Request headers; the identity pair is only added when a key is configured"""
    headers = {"User-Agent": user_agent}
    headers.update(identity.headers())
    return headers


def classify_response(status: int, message: str) -> ProbeOutcome:
    """Only a 500 naming the missing leader is worth retrying."""
    if 200 <= status < 300:
        return ProbeOutcome.SUCCESS
    if status == 500 and message and LEADER_NOT_FOUND in message:
        return ProbeOutcome.RETRYABLE_FAILURE
    return ProbeOutcome.TERMINAL_FAILURE


class MarkerRegistrar:
    """Performs one marker registration per call"""

    def __init__(self, session: aiohttp.ClientSession, url: str,
                 headers: Dict[str, str], record: MarkerRecord):
        self.session = session
        self.url = url
        self.headers = headers
        self.record = record

    async def register(self) -> ProbeOutcome:
        logger.info("[ops monitor]register persistent instance to test whether raft module is ok or not")
        try:
            async with self.session.post(self.url, params=self.record.to_params(),
                                         headers=self.headers) as response:
                body = await response.text()
                status = response.status
                reason = response.reason or ""
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("[ops monitor]register persistent instance error, ex msg: %s", e)
            probe_metrics.probe_attempts.labels(ProbeOutcome.TERMINAL_FAILURE.value).inc()
            return ProbeOutcome.TERMINAL_FAILURE

        outcome = classify_response(status, f"{status} {reason}: {body}")
        if outcome is ProbeOutcome.SUCCESS:
            logger.info("[ops monitor]register persistent instance ok, response status: %s, response body: %s",
                        status, body)
        else:
            logger.error("[ops monitor]register persistent instance error, response status: %s, response body: %s",
                         status, body)
        probe_metrics.probe_attempts.labels(outcome.value).inc()
        return outcome


class MarkerCleaner:
    """Removes the marker instance so it does not linger in the service list"""

    def __init__(self, session: aiohttp.ClientSession, url: str,
                 headers: Dict[str, str], record: MarkerRecord):
        self.session = session
        self.url = url
        self.headers = headers
        self.record = record

    async def cleanup(self) -> bool:
        """Best effort; returns False instead of raising when the delete fails"""
        logger.info("[ops monitor]delete persistent instance to recover naming list")
        try:
            async with self.session.delete(self.url, params=self.record.to_params(),
                                           headers=self.headers) as response:
                body = await response.text()
                if response.status >= 400:
                    logger.info("[ops monitor]delete persistent instance failed, will ignore it, "
                                "response status: %s, response body: %s", response.status, body)
                    probe_metrics.cleanup_failures.inc()
                    return False
                logger.info("[ops monitor]delete persistent instance ok, response status: %s, response body: %s",
                            response.status, body)
                return True
        except Exception as e:
            logger.info("[ops monitor]delete persistent instance to recover naming list error, will ignore it: %s", e)
            probe_metrics.cleanup_failures.inc()
            return False
