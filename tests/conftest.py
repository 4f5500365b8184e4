"""
Shared fixtures: fake upload transport, recording notifier, file factories.
"""

from __future__ import annotations

import asyncio

import pytest

from medialink.document import UploadFile
from medialink.platforms.notifier import RecordingNotifier
from medialink.platforms.transport import UploadResponse


class FakeTransport:
    """Upload transport that answers from memory.

    ``gates`` maps a file name to an asyncio.Event the upload waits on, so a
    test can decide the completion order. Names in ``fail`` raise.
    """

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.progress: list[tuple[str, int, int]] = []

    async def upload(self, file, on_progress=None):
        self.calls.append(file.name)
        if on_progress:
            on_progress(0, file.size)
            self.progress.append((file.name, 0, file.size))
        gate = self.gates.get(file.name)
        if gate is not None:
            await gate.wait()
        if file.name in self.fail:
            raise ConnectionError("storage unavailable")
        return UploadResponse(f"https://cdn.test/{file.name}")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def png():
    def make(name="image.png"):
        return UploadFile(name=name, content_type="image/png", data=b"\x89PNG\r\n\x1a\n")
    return make


@pytest.fixture
def txt():
    def make(name="notes.txt"):
        return UploadFile(name=name, content_type="text/plain", data=b"hello")
    return make


async def settle(rounds: int = 10):
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def tick():
    return settle
