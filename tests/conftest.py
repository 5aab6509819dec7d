"""
共享的 pytest fixtures 和配置
"""

import asyncio
import os
import sys
import tempfile
import shutil
from pathlib import Path
from typing import List, Optional

import pytest


@pytest.fixture(scope="session", autouse=True)
def _isolate_app_config():
    """Isolate on-disk config from developer machine.

    Tests should not read/write user home config.json.
    """

    tmp_cfg_dir = Path(tempfile.mkdtemp())
    os.environ["EIND_CONFIG_DIR"] = str(tmp_cfg_dir)
    try:
        yield
    finally:
        try:
            shutil.rmtree(tmp_cfg_dir, ignore_errors=True)
        finally:
            os.environ.pop("EIND_CONFIG_DIR", None)


# 添加项目根目录到 Python 路径
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from eind.core.transport import (  # noqa: E402
    CallHandle,
    ConnectionHandle,
    MediaAccessError,
    MediaDevices,
    MediaStream,
    TransportError,
    TransportProvider,
)


class ManualTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """时钟由测试手动推进"""

    def __init__(self, start: float = 1_704_067_200.0):
        self._now = start
        self.timers: List[ManualTimer] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback) -> ManualTimer:
        timer = ManualTimer(self._now + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self._now = timer.due
            timer.callback()
        self._now = target


class FakeConnection(ConnectionHandle):
    def __init__(self, remote_id: str, is_open: bool = True):
        self.remote_id = remote_id
        self._open = is_open
        self.sent: List[dict] = []
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, payload: dict) -> None:
        if not self._open:
            raise TransportError("closed")
        self.sent.append(payload)

    def close(self) -> None:
        self.close_count += 1
        self._open = False


class FakeCall(CallHandle):
    def __init__(self, remote_id: str):
        self.remote_id = remote_id
        self.answered_with: Optional[MediaStream] = None
        self.close_count = 0

    def answer(self, stream: MediaStream) -> None:
        self.answered_with = stream

    def close(self) -> None:
        self.close_count += 1


class FakeTrack:
    def __init__(self, kind: str):
        self.kind = kind
        self.stop_count = 0

    def stop(self) -> None:
        self.stop_count += 1


class FakeStream(MediaStream):
    def __init__(self, kinds=("audio", "video")):
        self._tracks = [FakeTrack(k) for k in kinds]
        self.stop_count = 0

    @property
    def tracks(self):
        return list(self._tracks)

    def stop(self) -> None:
        self.stop_count += 1
        for t in self._tracks:
            t.stop()


class FakeMedia(MediaDevices):
    """可控的媒体设备: 可失败, 也可挂起直到测试放行"""

    def __init__(self):
        self.error: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None
        self.requests: List[dict] = []
        self.streams: List[FakeStream] = []

    async def acquire(self, video: bool = True, audio: bool = True) -> FakeStream:
        self.requests.append({"video": video, "audio": audio})
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise MediaAccessError(self.error)
        kinds = [k for k, wanted in (("audio", audio), ("video", video)) if wanted]
        stream = FakeStream(kinds)
        self.streams.append(stream)
        return stream


class FakeTransport(TransportProvider):
    def __init__(self):
        self.opened_as: Optional[str] = None
        self.ice_servers: List[str] = []
        self.events = None
        self.connect_requests: List[dict] = []
        self.connections: List[FakeConnection] = []
        self.calls: List[FakeCall] = []
        self.fail_connect: Optional[str] = None
        self.reconnects = 0
        self.destroyed = False

    def open(self, local_id, ice_servers, events) -> None:
        self.opened_as = local_id
        self.ice_servers = list(ice_servers)
        self.events = events

    def connect(self, remote_id, reliable=True, serialization="json") -> FakeConnection:
        self.connect_requests.append(
            {"remote_id": remote_id, "reliable": reliable, "serialization": serialization}
        )
        if self.fail_connect:
            raise TransportError(self.fail_connect)
        conn = FakeConnection(remote_id)
        self.connections.append(conn)
        return conn

    def call(self, remote_id, stream) -> FakeCall:
        call = FakeCall(remote_id)
        call.local_stream = stream
        self.calls.append(call)
        return call

    def reconnect(self) -> None:
        self.reconnects += 1

    def destroy(self) -> None:
        self.destroyed = True


@pytest.fixture
def temp_dir():
    """创建临时目录，测试后自动清理"""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def make_conn():
    """返回创建 FakeConnection 的工厂"""
    return FakeConnection


@pytest.fixture
def make_call():
    return FakeCall


@pytest.fixture
def make_stream():
    return FakeStream
