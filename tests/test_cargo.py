import json
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from unittest import mock

import pytest

from relplz.cargo import (
    PublishTimeoutError,
    SparseIndex,
    is_published,
    is_version_present,
    run_cargo,
    wait_until_published,
)


class FakeIndex:
    def __init__(self, answers):
        self.answers = list(answers)
        self.calls = 0

    def crate_versions(self, crate_name):
        self.calls += 1
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0]


class SlowIndex:
    def crate_versions(self, crate_name):
        time.sleep(0.5)
        return ["0.1.0"]


@pytest.fixture
def sparse_server():
    lines = "\n".join(json.dumps({"name": "foo", "vers": v}) for v in ["0.1.0", "0.2.0"])
    requested = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            requested.append(self.path)
            if self.path == "/3/f/foo":
                body = lines.encode()
                self.send_response(200)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            else:
                self.send_response(404)
                self.send_header("Content-Length", "0")
                self.end_headers()

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"sparse+http://127.0.0.1:{server.server_port}/", requested
    server.shutdown()
    server.server_close()


def test_sparse_index_reads_versions(sparse_server):
    url, requested = sparse_server
    index = SparseIndex(url)
    assert index.crate_versions("foo") == ["0.1.0", "0.2.0"]
    assert requested == ["/3/f/foo"]


def test_sparse_index_unknown_crate(sparse_server):
    url, _ = sparse_server
    assert SparseIndex(url).crate_versions("unknown") is None


def test_is_published_with_sparse_index(sparse_server):
    url, _ = sparse_server
    index = SparseIndex(url)
    assert is_published(index, "foo", "0.2.0", 10)
    assert not is_published(index, "foo", "0.3.0", 10)


def test_is_version_present():
    assert is_version_present("0.1.0", ["0.0.1", "0.1.0"])
    assert not is_version_present("0.1.0", [])


def test_is_published_missing_crate():
    assert not is_published(FakeIndex([None]), "foo", "0.1.0", 5)


def test_is_published_times_out():
    with pytest.raises(PublishTimeoutError, match="timeout while publishing foo"):
        is_published(SlowIndex(), "foo", "0.1.0", 0.05)


def test_wait_until_published_returns_when_present():
    index = FakeIndex([["0.1.0"]])
    wait_until_published(index, "foo", "0.1.0", 5)
    assert index.calls == 1


@mock.patch("time.sleep")
def test_wait_until_published_polls_again(sleep):
    index = FakeIndex([None, ["0.1.0"]])
    wait_until_published(index, "foo", "0.1.0", 60)
    assert index.calls == 2
    assert sleep.call_count == 1


def test_wait_until_published_timeout():
    with pytest.raises(PublishTimeoutError, match="publish_timeout"):
        wait_until_published(FakeIndex([None]), "foo", "0.1.0", 0)


def test_run_cargo_captures_output(tmp_path, monkeypatch):
    monkeypatch.setenv("CARGO", sys.executable)
    script = "import sys; print(' out '); print('err line', file=sys.stderr)"
    stdout, stderr = run_cargo(tmp_path, ["-c", script])
    assert stdout == "out"
    assert stderr == "err line"


def test_run_cargo_uses_root_as_cwd(tmp_path, monkeypatch):
    monkeypatch.setenv("CARGO", sys.executable)
    stdout, _ = run_cargo(tmp_path, ["-c", "import os; print(os.getcwd())"])
    assert stdout == str(tmp_path.resolve()) or stdout == str(tmp_path)


def test_run_cargo_missing_binary(tmp_path, monkeypatch):
    monkeypatch.setenv("CARGO", str(tmp_path / "no-such-cargo"))
    with pytest.raises(OSError, match="cannot run cargo"):
        run_cargo(tmp_path, ["--version"])