import signal
import threading

import pytest

from spectreidx.signals import ShutdownHandler


def test_default_run_flag_is_set():
    handler = ShutdownHandler()
    assert handler.run.is_set()


def test_first_signal_clears_run(caplog):
    run = threading.Event()
    run.set()
    handler = ShutdownHandler(run)
    with caplog.at_level("WARNING"):
        handler.request_stop("SIGINT")
    assert not run.is_set()
    assert "SIGINT received, stopping... (repeat for forced close)" in caplog.text


def test_second_signal_exits_with_status_one(caplog):
    handler = ShutdownHandler()
    handler.request_stop("SIGTERM")
    with caplog.at_level("WARNING"):
        with pytest.raises(SystemExit) as info:
            handler.request_stop("SIGTERM")
    assert info.value.code == 1
    assert "SIGTERM received, terminating..." in caplog.text


def test_install_routes_sigint_to_handler():
    handler = ShutdownHandler()
    previous = handler.install()
    try:
        assert signal.SIGINT in previous
        installed = signal.getsignal(signal.SIGINT)
        installed(signal.SIGINT, None)
        assert not handler.run.is_set()
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)


def test_install_returns_replaced_handlers():
    before = signal.getsignal(signal.SIGINT)
    handler = ShutdownHandler()
    previous = handler.install()
    try:
        assert previous[signal.SIGINT] == before
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)
    assert signal.getsignal(signal.SIGINT) == before