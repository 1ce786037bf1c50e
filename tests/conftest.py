import time

import pytest

from db.database import SessionStore, StoreUnavailable
from processing.summarizer import Summarizer
from processing.transcriber import Transcriber, TranscriberFactory
from server.session_fsm import SessionFSM


class EventRecorder:
    """Async emit target that remembers every (event, data) pair."""

    def __init__(self):
        self.events = []

    async def __call__(self, event, data=None):
        self.events.append((event, data))

    def names(self):
        return [event for event, _ in self.events]

    def payloads(self, name):
        return [data for event, data in self.events if event == name]


class StubSummarizer(Summarizer):
    def __init__(self, result="Short summary.", error=None, delay=0.0):
        super().__init__(provider="stub")
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    def generate(self, transcript):
        self.calls.append(transcript)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


class StubTranscriber(Transcriber):
    def __init__(self, final_text="meeting audio content", delay=0.0, **kwargs):
        super().__init__(**kwargs)
        self.final_text = final_text
        self.delay = delay
        self.chunks = []
        self.finish_calls = 0

    def _accept(self, chunk):
        self.chunks.append(chunk)

    def _finish(self):
        self.finish_calls += 1
        if self.delay:
            time.sleep(self.delay)
        return self.final_text


class StubTranscriberFactory:
    def __init__(self, final_text="meeting audio content", delay=0.0):
        self.final_text = final_text
        self.delay = delay
        self.created = []

    def __call__(self, **kwargs):
        transcriber = StubTranscriber(self.final_text, self.delay, **kwargs)
        self.created.append(transcriber)
        return transcriber


class FlakyStore(SessionStore):
    """SessionStore whose writes can be switched to fail."""

    def __init__(self, db_path, fail_create=False, fail_update=False):
        super().__init__(db_path)
        self.fail_create = fail_create
        self.fail_update = fail_update

    def create(self, *args, **kwargs):
        if self.fail_create:
            raise StoreUnavailable("database is locked")
        return super().create(*args, **kwargs)

    def update(self, session_id, **fields):
        if self.fail_update:
            raise StoreUnavailable("disk I/O error")
        return super().update(session_id, **fields)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload or {}
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = text

    def json(self):
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise RuntimeError(f"HTTP {self.status_code}")


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "sessions.db")


@pytest.fixture
def flaky_store(tmp_path):
    return FlakyStore(tmp_path / "flaky.db")


@pytest.fixture
def summarizer():
    return StubSummarizer()


@pytest.fixture
def transcriber_factory():
    return StubTranscriberFactory()


@pytest.fixture
def make_fsm(store, summarizer, transcriber_factory):
    """Build a SessionFSM plus the recorder that captures its emits."""

    def _make(store=store, summarizer=summarizer, transcriber_factory=transcriber_factory, **kwargs):
        events = EventRecorder()
        fsm = SessionFSM(store, summarizer, transcriber_factory, events, **kwargs)
        return fsm, events

    return _make


@pytest.fixture
def mock_factory():
    return TranscriberFactory("mock")
