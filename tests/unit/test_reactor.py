"""
Unit tests for the reactor.
"""

import socket
import threading
import time

import pytest

from hashserver.core.reactor import Reactor
from hashserver.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(workers=2, idle_timeout=0.1)
    pool.start()
    yield pool
    pool.shutdown(wait=True, timeout=5.0)


@pytest.fixture
def reactor(pool):
    reactor = Reactor(pool, poll_interval=0.05)
    reactor.start()
    yield reactor
    reactor.stop()


@pytest.fixture
def sockets():
    a, b = socket.socketpair()
    a.setblocking(False)
    yield a, b
    a.close()
    b.close()


def wait_for(predicate, timeout=5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestReactor:
    """Tests for readiness dispatch."""

    def test_readable_fires_on_data(self, reactor, sockets):
        a, b = sockets
        fired = threading.Event()

        reactor.wait_readable(a, fired.set)
        assert not fired.wait(timeout=0.2)

        b.send(b"x")
        assert fired.wait(timeout=5.0)

    def test_readable_fires_on_eof(self, reactor, sockets):
        """Test that a peer close counts as readiness."""
        a, b = sockets
        fired = threading.Event()

        reactor.wait_readable(a, fired.set)
        b.shutdown(socket.SHUT_WR)

        assert fired.wait(timeout=5.0)

    def test_writable_fires(self, reactor, sockets):
        a, _ = sockets
        fired = threading.Event()

        reactor.wait_writable(a, fired.set)

        assert fired.wait(timeout=5.0)

    def test_callback_runs_on_worker(self, reactor, sockets):
        a, b = sockets
        names = []
        fired = threading.Event()

        def handler():
            names.append(threading.current_thread().name)
            fired.set()

        reactor.wait_readable(a, handler)
        b.send(b"x")

        assert fired.wait(timeout=5.0)
        assert names[0].startswith("Worker-")

    def test_one_shot(self, reactor, sockets):
        """Test that an interest fires once and must be re-armed."""
        a, b = sockets
        calls = []

        reactor.wait_readable(a, lambda: calls.append(1))
        b.send(b"x")

        assert wait_for(lambda: calls == [1])
        assert wait_for(lambda: reactor.pending == 0)

        # Data is still unread, but nobody asked again
        time.sleep(0.2)
        assert calls == [1]

        reactor.wait_readable(a, lambda: calls.append(2))
        assert wait_for(lambda: calls == [1, 2])

    def test_closed_socket_completes_immediately(self, reactor):
        """Test that a socket that cannot be watched still gets its completion."""
        a, b = socket.socketpair()
        a.close()
        b.close()
        fired = threading.Event()

        reactor.wait_readable(a, fired.set)

        assert fired.wait(timeout=5.0)


class TestReactorLifecycle:
    """Tests for start/stop."""

    def test_wait_before_start(self, pool, sockets):
        reactor = Reactor(pool)

        with pytest.raises(RuntimeError):
            reactor.wait_readable(sockets[0], lambda: None)

    def test_wait_after_stop(self, pool, sockets):
        reactor = Reactor(pool, poll_interval=0.05)
        reactor.start()
        reactor.stop()

        assert not reactor.is_running
        with pytest.raises(RuntimeError):
            reactor.wait_readable(sockets[0], lambda: None)

    def test_stop_drops_pending(self, pool, sockets):
        """Test that interests still registered at stop never fire."""
        a, b = sockets
        reactor = Reactor(pool, poll_interval=0.05)
        reactor.start()
        fired = threading.Event()

        reactor.wait_readable(a, fired.set)
        assert wait_for(lambda: reactor.pending == 1)
        reactor.stop()

        b.send(b"x")
        assert not fired.wait(timeout=0.3)
