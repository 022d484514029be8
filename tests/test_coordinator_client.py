import io
import socket
import socketserver
import threading

import pytest

from lrb_core.coordinator_client import CoordinatorClient, ProbeResult


class _NotifierHandler(socketserver.StreamRequestHandler):
    def handle(self):
        line = self.rfile.readline().decode("ascii")
        self.server.received.append(line)
        reply = self.server.replies.get(line.strip())
        if reply is not None:
            self.wfile.write(reply.encode("ascii"))


class _FakeNotifier(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), _NotifierHandler)
        self.received = []
        self.replies = {}


@pytest.fixture()
def notifier():
    server = _FakeNotifier()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


def _client(server) -> CoordinatorClient:
    host, port = server.server_address
    return CoordinatorClient(host, port, timeout=5.0)


def _closed_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def test_query_readiness_true_on_yes(notifier):
    notifier.replies["done?"] = "yes\n"
    client = _client(notifier)

    assert client.query_readiness() is True
    assert client.probe_readiness() is ProbeResult.YES
    assert notifier.received == ["done?\n", "done?\n"]


def test_query_readiness_trims_reply(notifier):
    notifier.replies["done?"] = "  yes \r\n"
    assert _client(notifier).query_readiness() is True


@pytest.mark.parametrize("reply", ["no\n", "YES\n", "yes please\n", "\n"])
def test_query_readiness_false_on_other_replies(notifier, reply):
    notifier.replies["done?"] = reply
    client = _client(notifier)

    assert client.query_readiness() is False
    assert client.probe_readiness() is ProbeResult.NO


def test_no_reply_at_all_means_not_ready(notifier):
    client = _client(notifier)

    assert client.probe_readiness() is ProbeResult.NO
    assert client.query_readiness() is False


def test_check_liveness(notifier):
    notifier.replies["ruok"] = "imok\n"
    client = _client(notifier)

    assert client.check_liveness() is True
    assert notifier.received == ["ruok\n"]

    notifier.replies["ruok"] = "yes\n"
    assert client.check_liveness() is False


def test_unreachable_coordinator_is_not_an_error():
    client = CoordinatorClient("127.0.0.1", _closed_port(), timeout=2.0)

    assert client.probe_readiness() is ProbeResult.UNREACHABLE
    assert client.probe_liveness() is ProbeResult.UNREACHABLE
    assert client.query_readiness() is False
    assert client.check_liveness() is False
    client.request_shutdown()


def test_request_shutdown_sends_command(notifier):
    client = _client(notifier)
    client.request_shutdown()

    # The handler runs on its own thread; wait for it to record the command
    for _ in range(100):
        if notifier.received:
            break
        threading.Event().wait(0.02)
    assert notifier.received == ["shtdn\n"]


class _FakeSocket:
    def __init__(self, fail_send=False, reply=b""):
        self.fail_send = fail_send
        self.reply = reply
        self.sent = []
        self.closed = False
        self.makefile_calls = 0

    def sendall(self, data):
        if self.fail_send:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    def makefile(self, mode):
        self.makefile_calls += 1
        return io.BytesIO(self.reply)

    def close(self):
        self.closed = True


def _fake_client(sock):
    return CoordinatorClient("coordinator", 1234, connect=lambda address, timeout: sock)


def test_request_shutdown_closes_without_reading():
    sock = _FakeSocket(reply=b"should never be read\n")
    _fake_client(sock).request_shutdown()

    assert sock.sent == [b"shtdn\n"]
    assert sock.makefile_calls == 0
    assert sock.closed


def test_request_shutdown_closes_even_when_write_fails():
    sock = _FakeSocket(fail_send=True)
    _fake_client(sock).request_shutdown()

    assert sock.closed


def test_probe_closes_connection_when_write_fails():
    sock = _FakeSocket(fail_send=True)
    assert _fake_client(sock).probe_readiness() is ProbeResult.UNREACHABLE
    assert sock.closed


def test_probe_passes_address_and_timeout_to_connect():
    calls = []
    sock = _FakeSocket(reply=b"imok\n")

    def connect(address, timeout):
        calls.append((address, timeout))
        return sock

    client = CoordinatorClient("coordinator", 4321, timeout=1.5, connect=connect)
    assert client.check_liveness() is True
    assert calls == [(("coordinator", 4321), 1.5)]
    assert sock.sent == [b"ruok\n"]
    assert sock.closed
