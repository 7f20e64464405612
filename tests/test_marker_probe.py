"""Tests for marker registration, classification and cleanup."""

import aiohttp
import pytest

import probe_metrics
from conftest import LEADER_NOT_FOUND_BODY
from marker_probe import (
    MarkerCleaner,
    MarkerRecord,
    MarkerRegistrar,
    ProbeOutcome,
    build_headers,
    classify_response,
)
from monitor_config import AuthIdentity


def _attempts(outcome: ProbeOutcome) -> float:
    value = probe_metrics.REGISTRY.get_sample_value(
        "ops_monitor_probe_attempts_total", {"outcome": outcome.value})
    return value or 0.0


class TestMarkerRecord:

    def test_params_mark_instance_persistent(self):
        params = MarkerRecord().to_params()

        assert params == {
            "ip": "localhost",
            "port": "52520",
            "serviceName": "test-persistent-instance-server",
            "ephemeral": "false",
        }


class TestBuildHeaders:

    def test_without_identity(self):
        headers = build_headers("Nacos-Server:2.3.2", AuthIdentity())
        assert headers == {"User-Agent": "Nacos-Server:2.3.2"}

    def test_with_identity(self):
        headers = build_headers("agent", AuthIdentity("serverIdentity", "security"))
        assert headers == {"User-Agent": "agent", "serverIdentity": "security"}


class TestClassifyResponse:

    def test_success(self):
        assert classify_response(200, "ok") is ProbeOutcome.SUCCESS

    def test_leader_missing_is_retryable(self):
        assert classify_response(500, LEADER_NOT_FOUND_BODY) is ProbeOutcome.RETRYABLE_FAILURE

    def test_other_server_error_is_terminal(self):
        assert classify_response(500, "java.lang.NullPointerException") is ProbeOutcome.TERMINAL_FAILURE

    def test_leader_message_needs_500(self):
        assert classify_response(503, LEADER_NOT_FOUND_BODY) is ProbeOutcome.TERMINAL_FAILURE

    def test_auth_rejection_is_terminal(self):
        assert classify_response(403, "user not found!") is ProbeOutcome.TERMINAL_FAILURE


class TestMarkerRegistrar:

    @pytest.mark.asyncio
    async def test_register_success(self, fake_node, make_config):
        config = make_config(fake_node)
        before = _attempts(ProbeOutcome.SUCCESS)

        async with aiohttp.ClientSession() as session:
            registrar = MarkerRegistrar(session, config.instance_url, {"User-Agent": "test"}, MarkerRecord())
            outcome = await registrar.register()

        assert outcome is ProbeOutcome.SUCCESS
        assert _attempts(ProbeOutcome.SUCCESS) == before + 1
        method, query, headers = fake_node.calls("POST")[0]
        assert query["serviceName"] == "test-persistent-instance-server"
        assert query["ephemeral"] == "false"
        assert headers["User-Agent"] == "test"

    @pytest.mark.asyncio
    async def test_register_leader_missing(self, fake_node, make_config):
        fake_node.register_responses = [(500, LEADER_NOT_FOUND_BODY)]
        config = make_config(fake_node)

        async with aiohttp.ClientSession() as session:
            registrar = MarkerRegistrar(session, config.instance_url, {}, MarkerRecord())
            assert await registrar.register() is ProbeOutcome.RETRYABLE_FAILURE

    @pytest.mark.asyncio
    async def test_register_unauthorized(self, fake_node, make_config):
        fake_node.register_responses = [(403, "user not found!")]
        config = make_config(fake_node)

        async with aiohttp.ClientSession() as session:
            registrar = MarkerRegistrar(session, config.instance_url, {}, MarkerRecord())
            assert await registrar.register() is ProbeOutcome.TERMINAL_FAILURE

    @pytest.mark.asyncio
    async def test_register_connection_refused(self, unused_tcp_port):
        url = f"http://127.0.0.1:{unused_tcp_port}/nacos/v1/ns/instance"

        async with aiohttp.ClientSession() as session:
            registrar = MarkerRegistrar(session, url, {}, MarkerRecord())
            assert await registrar.register() is ProbeOutcome.TERMINAL_FAILURE


class TestMarkerCleaner:

    @pytest.mark.asyncio
    async def test_cleanup_deletes_same_identity(self, fake_node, make_config):
        config = make_config(fake_node)
        headers = {"User-Agent": "test", "serverIdentity": "security"}

        async with aiohttp.ClientSession() as session:
            cleaner = MarkerCleaner(session, config.instance_url, headers, MarkerRecord())
            assert await cleaner.cleanup() is True

        method, query, sent = fake_node.calls("DELETE")[0]
        assert query == MarkerRecord().to_params()
        assert sent["serverIdentity"] == "security"

    @pytest.mark.asyncio
    async def test_cleanup_error_response_is_swallowed(self, fake_node, make_config):
        fake_node.delete_response = (500, "boom")
        config = make_config(fake_node)
        before = probe_metrics.REGISTRY.get_sample_value("ops_monitor_cleanup_failures_total") or 0.0

        async with aiohttp.ClientSession() as session:
            cleaner = MarkerCleaner(session, config.instance_url, {}, MarkerRecord())
            assert await cleaner.cleanup() is False

        assert probe_metrics.REGISTRY.get_sample_value("ops_monitor_cleanup_failures_total") == before + 1

    @pytest.mark.asyncio
    async def test_cleanup_connection_error_is_swallowed(self, unused_tcp_port):
        url = f"http://127.0.0.1:{unused_tcp_port}/nacos/v1/ns/instance"

        async with aiohttp.ClientSession() as session:
            cleaner = MarkerCleaner(session, url, {}, MarkerRecord())
            assert await cleaner.cleanup() is False
