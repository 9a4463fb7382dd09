"""
Shared test fixtures for Play Ripper tests.

Network access is replaced by ``FakeNetwork``, which serves canned bodies per
URL and records every fetch, so no test makes a real HTTP request.
"""
import os
import sys
import tempfile

import pytest

from play_ripper.utils.network import FetchResult


class FakeNetwork:
    """Stands in for NetworkHandler: unknown URLs answer 404."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        resp = self.responses.get(url)
        if resp is None:
            return FetchResult(404)
        if isinstance(resp, FetchResult):
            return resp
        return FetchResult(200, resp, "text/plain")


FAKE_ENCODER = r'''
import os
import signal
import sys
import time

args = sys.argv[1:]
source = args[args.index("-i") + 1]
print("Duration: 00:00:10.00, start: 0.000000, bitrate: 1000 kb/s", flush=True)

kind, _, value = source.partition(":")
if kind == "sleep":
    seconds, _, code = value.partition(":")
    time.sleep(float(seconds))
    sys.exit(int(code or 0))
if kind == "signal":
    os.kill(os.getpid(), signal.SIGTERM)
    time.sleep(5)
if kind == "exit":
    sys.exit(int(value))
sys.exit(0)
'''


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    d = tempfile.mkdtemp()
    yield d
    import shutil
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def fake_network():
    """Factory for FakeNetwork instances."""
    def _make(responses=None):
        return FakeNetwork(responses)
    return _make


@pytest.fixture
def fake_encoder(temp_dir):
    """Command prefix that runs a tiny Python script in place of ffmpeg.

    The script's behaviour is chosen by the input URL: ``exit:N``,
    ``sleep:SECONDS:N`` or ``signal``.
    """
    path = os.path.join(temp_dir, "fake_encoder.py")
    with open(path, "w", encoding="utf-8") as f:
        f.write(FAKE_ENCODER)
    return [sys.executable, path]
