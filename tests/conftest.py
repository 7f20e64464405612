"""
Shared pytest fixtures for ops monitor tests.

The fake node is a real aiohttp application serving the instance and readiness
endpoints, so probe requests go over HTTP exactly as they do against a node.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from monitor_config import ENV_OVERRIDES, OpsMonitorConfig

INSTANCE_PATH = "/nacos/v1/ns/instance"
READINESS_PATH = "/nacos/v1/console/health/readiness"

LEADER_NOT_FOUND_BODY = (
    "caused: java.lang.IllegalStateException: failed to req API:/nacos/v1/ns/instance. "
    "code:500 msg: did not find the Leader node;"
)


class FakeNode:
    """Scripted stand-in for the node's HTTP API"""

    def __init__(self):
        self.register_responses: List[Tuple[int, str]] = []
        self.delete_response: Tuple[int, str] = (200, "ok")
        self.ready = True
        self.requests: List[Tuple[str, Dict[str, str], Any]] = []
        self.port = 0

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(INSTANCE_PATH, self.handle_register)
        app.router.add_delete(INSTANCE_PATH, self.handle_delete)
        app.router.add_get(READINESS_PATH, self.handle_readiness)
        return app

    async def handle_register(self, request):
        self.requests.append(("POST", dict(request.query), request.headers.copy()))
        status, text = self.register_responses.pop(0) if self.register_responses else (200, "ok")
        return web.Response(status=status, text=text)

    async def handle_delete(self, request):
        self.requests.append(("DELETE", dict(request.query), request.headers.copy()))
        status, text = self.delete_response
        return web.Response(status=status, text=text)

    async def handle_readiness(self, request):
        if self.ready:
            return web.Response(text="OK")
        return web.Response(status=500, text="naming not ready")

    def calls(self, method: str) -> List[Tuple[str, Dict[str, str], Any]]:
        return [r for r in self.requests if r[0] == method]


def clean_env() -> Dict[str, str]:
    """Current environment without any ops monitor overrides"""
    return {k: v for k, v in os.environ.items() if k not in ENV_OVERRIDES}


@pytest_asyncio.fixture
async def fake_node():
    node = FakeNode()
    server = TestServer(node.build_app())
    await server.start_server()
    node.port = server.port
    yield node
    await server.close()


@pytest.fixture
def raft_dir(tmp_path) -> Path:
    """Populated Raft data directory under a temporary node home"""
    raft = tmp_path / "data" / "protocol" / "raft"
    (raft / "naming_persistent_service_v2" / "log").mkdir(parents=True)
    (raft / "naming_persistent_service_v2" / "meta-data").mkdir()
    (raft / "naming_persistent_service_v2" / "log" / "000001.sst").write_text("log")
    (raft / "naming_persistent_service_v2" / "meta-data" / "raft_meta").write_text("term=3")
    (raft / "snapshot.lock").write_text("")
    return raft


@pytest.fixture
def make_config(tmp_path):
    """Config pointing at the fake node with no waiting between attempts"""

    def _make(node: FakeNode, **overrides) -> OpsMonitorConfig:
        values = dict(
            enabled=True,
            max_retries=20,
            probe_interval=0.0,
            poll_interval=0.0,
            request_timeout=5.0,
            server_host="127.0.0.1",
            server_port=node.port,
            node_home=str(tmp_path),
        )
        values.update(overrides)
        return OpsMonitorConfig(**values)

    return _make
