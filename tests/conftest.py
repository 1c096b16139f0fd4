"""Pytest configuration and shared fixtures."""

import asyncio
import json
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

import pytest

from faucet_agent.config.settings import AgentSettings, RetryConfig
from faucet_agent.errors import DeliveryError
from faucet_agent.models.metrics import MetricFamilies


@pytest.fixture
def test_settings() -> AgentSettings:
    """Create test configuration."""
    return AgentSettings(
        event_socket="/tmp/faucet-test.sock",
        prometheus_remote_write_uri="http://127.0.0.1:9090/api/v1/write",
        log_level="debug",
        retry=RetryConfig(initial_backoff_seconds=0.0, max_backoff_seconds=0.05),
    )


@pytest.fixture
def sample_l3_learn_event() -> Dict[str, Any]:
    """L3 learn event as emitted by faucet."""
    return {
        'version': 1,
        'time': 1634300000.123,
        'dp_id': 1,
        'dp_name': 'sw1',
        'event_id': 5,
        'L3_LEARN': {
            'eth_src': 'aa:bb:cc:dd:ee:ff',
            'l3_src_ip': '10.0.0.5',
            'port_no': 3,
            'vid': 100
        }
    }


@pytest.fixture
def sample_l3_learn_line(sample_l3_learn_event) -> bytes:
    return json.dumps(sample_l3_learn_event).encode()


@pytest.fixture
def sample_port_change_line() -> bytes:
    return json.dumps({
        'version': 1,
        'time': 1634300001.5,
        'dp_id': 1,
        'dp_name': 'sw1',
        'event_id': 6,
        'PORT_CHANGE': {
            'port_no': 3,
            'reason': 'MODIFY',
            'state': 1,
            'status': False
        }
    }).encode()


@pytest.fixture
def socket_dir():
    """Short temporary directory; unix socket paths are length limited."""
    path = tempfile.mkdtemp(prefix='fa-')
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(socket_dir) -> str:
    return os.path.join(socket_dir, 'event.sock')


class EventSocketServer:
    """
    Unix socket server standing in for faucet.

    Each accepted connection is sent the next batch of lines from
    ``sessions``; the connection is then closed, or held open when
    ``hold_open`` is set (or when sessions run out).
    """

    def __init__(self, path: str, sessions: List[List[bytes]], hold_open: bool = False):
        self.path = path
        self.sessions = list(sessions)
        self.hold_open = hold_open
        self.connections = 0
        self.peer_closed = asyncio.Event()
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self):
        self._server = await asyncio.start_unix_server(self._handle, path=self.path)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.connections += 1
        lines = self.sessions.pop(0) if self.sessions else []

        for line in lines:
            writer.write(line + b"\n")
        await writer.drain()

        if self.hold_open or not self.sessions and not lines:
            # Wait for the client to go away
            await reader.read()
            self.peer_closed.set()

        writer.close()


@pytest.fixture
def event_server(socket_path):
    """Factory for started EventSocketServer instances."""
    servers = []

    async def _start(sessions: List[List[bytes]], hold_open: bool = False) -> EventSocketServer:
        server = EventSocketServer(socket_path, sessions, hold_open=hold_open)
        await server.start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        if server._server:
            server._server.close()


class RecordingSink:
    """MetricSink stand-in that remembers what it was asked to send."""

    def __init__(self, fail: bool = False):
        self.sent: List[MetricFamilies] = []
        self.fail = fail

    async def send(self, families: MetricFamilies):
        self.sent.append(families)
        if self.fail:
            raise DeliveryError("server returned HTTP status 500: boom", status=500)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    return RecordingSink(fail=True)
