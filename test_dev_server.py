"""Development server port selection"""
import socket

import pytest

from society_gate import dev_server
from society_gate.config import settings


def test_fixed_port_is_used_as_is(monkeypatch):
    monkeypatch.setattr(settings, "dev_port", 9123)
    assert dev_server.pick_port("127.0.0.1") == 9123


def test_bound_port_is_not_available():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen()
        assert dev_server.is_port_available("127.0.0.1", busy.getsockname()[1]) is False


def test_first_free_port_in_range(monkeypatch):
    monkeypatch.setattr(settings, "dev_port", None)
    monkeypatch.setattr(settings, "dev_port_range", (8000, 8006))
    monkeypatch.setattr(dev_server, "is_port_available", lambda host, port: port not in (8000, 8001))
    assert dev_server.pick_port("127.0.0.1") == 8002


def test_no_free_port(monkeypatch):
    monkeypatch.setattr(settings, "dev_port", None)
    monkeypatch.setattr(dev_server, "is_port_available", lambda host, port: False)
    with pytest.raises(RuntimeError):
        dev_server.pick_port("127.0.0.1")
