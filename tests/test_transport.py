"""Retry and backoff behaviour of :mod:`component.modules.transport`."""

from __future__ import annotations

import http.server
import json
import threading
import time
import urllib.error
from pathlib import Path
from typing import List

import pytest

from component.modules.errors import TransportError
from component.modules.transport import RetryPolicy, download_file, get_json, with_retries


def _policy(sleeps: List[float], retries: int = 3, base: float = 2.0, cap: float = 5.0) -> RetryPolicy:
    return RetryPolicy(max_retries=retries, backoff_base=base, backoff_max=cap, timeout=5.0,
                       sleep=sleeps.append)


def test_retries_are_bounded_and_backoff_is_capped() -> None:
    sleeps: List[float] = []
    calls = []

    def always_fails():
        calls.append(1)
        raise urllib.error.URLError("connection refused")

    with pytest.raises(TransportError) as exc:
        with_retries("http://example.invalid/a", always_fails, _policy(sleeps))

    assert len(calls) == 4
    assert exc.value.attempts == 4
    assert sleeps == [2.0, 4.0, 5.0]
    assert isinstance(exc.value.__cause__, urllib.error.URLError)


def test_succeeds_after_transient_failures() -> None:
    sleeps: List[float] = []
    outcomes = [OSError("reset"), OSError("reset"), "ok"]

    def flaky():
        result = outcomes.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    assert with_retries("http://example.invalid/b", flaky, _policy(sleeps)) == "ok"
    assert sleeps == [2.0, 4.0]


def test_client_errors_are_not_retried() -> None:
    sleeps: List[float] = []

    def not_found():
        raise urllib.error.HTTPError("http://example.invalid/c", 404, "Not Found", {}, None)

    with pytest.raises(TransportError) as exc:
        with_retries("http://example.invalid/c", not_found, _policy(sleeps))
    assert exc.value.attempts == 1
    assert sleeps == []


def test_download_file_reports_progress(tmp_path: Path) -> None:
    src = tmp_path / "blob.bin"
    src.write_bytes(b"x" * 200_000)
    dest = tmp_path / "out" / "blob.bin"
    dest.parent.mkdir()
    seen = []

    download_file(src.as_uri(), str(dest), progress=lambda p, done, total: seen.append((done, total)),
                  policy=_policy([]))

    assert dest.read_bytes() == src.read_bytes()
    assert not (tmp_path / "out" / "blob.bin.part").exists()
    assert seen[0][0] == 0
    assert seen[-1] == (200_000, 200_000)


def test_get_json_reads_file_url(tmp_path: Path) -> None:
    src = tmp_path / "catalog.json"
    src.write_text(json.dumps({"data": [{"components": []}]}))
    assert get_json(src.as_uri(), policy=_policy([])) == {"data": [{"components": []}]}


def test_policy_reads_defaults() -> None:
    policy = RetryPolicy(max_retries=-1, backoff_base=3.0, backoff_max=10.0)
    assert policy.max_retries == 0
    assert policy.delay(1) == 3.0
    assert policy.delay(5) == 10.0


def test_throttling_status_is_retried() -> None:
    sleeps: List[float] = []
    outcomes = [urllib.error.HTTPError("http://example.invalid/d", 429, "Too Many Requests", {}, None), "ok"]

    def throttled():
        result = outcomes.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    assert with_retries("http://example.invalid/d", throttled, _policy(sleeps)) == "ok"
    assert sleeps == [2.0]


class _TrickleHandler(http.server.BaseHTTPRequestHandler):
    """Anuncia 8 bytes e envia um a cada 0,3s."""

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Length", "8")
        self.end_headers()
        try:
            for _ in range(8):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.3)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def trickle_url():
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), _TrickleHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/slow.tar.gz"
    finally:
        server.shutdown()
        server.server_close()


def test_download_deadline_covers_the_whole_attempt(tmp_path: Path, trickle_url: str) -> None:
    dest = tmp_path / "slow.tar.gz"
    policy = RetryPolicy(max_retries=0, timeout=0.5, sleep=lambda s: None)

    started = time.monotonic()
    with pytest.raises(TransportError) as exc:
        download_file(trickle_url, str(dest), policy=policy)

    assert isinstance(exc.value.__cause__, TimeoutError)
    assert exc.value.attempts == 1
    assert time.monotonic() - started < 2.0
    assert not dest.exists()
    assert not (tmp_path / "slow.tar.gz.part").exists()
