import os
import signal

from terradrift.constants import EXIT_INTERRUPTED
from terradrift.services.signals import SignalListener


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


class Recorder:
    def __init__(self):
        self.events = []

    def cleanup(self):
        self.events.append("cleanup")

    def exit(self, code):
        self.events.append(("exit", code))


def _listener(recorder):
    return SignalListener(logger=DummyLogger(), on_signal=recorder.cleanup, exit_func=recorder.exit)


def _wait_for_listener(listener):
    listener._thread.join(timeout=5)
    assert not listener._thread.is_alive()


def test_signal_clears_credentials_then_exits_with_interrupted_code():
    recorder = Recorder()
    listener = _listener(recorder)

    listener.arm()
    listener.trigger(signal.SIGTERM)
    _wait_for_listener(listener)
    listener.disarm()

    assert recorder.events == ["cleanup", ("exit", EXIT_INTERRUPTED)]


def test_os_signal_is_routed_to_listener():
    recorder = Recorder()
    listener = _listener(recorder)

    listener.arm()
    os.kill(os.getpid(), signal.SIGINT)
    _wait_for_listener(listener)
    listener.disarm()

    assert recorder.events == ["cleanup", ("exit", EXIT_INTERRUPTED)]


def test_normal_completion_does_not_run_exit_path():
    recorder = Recorder()
    listener = _listener(recorder)

    listener.arm()
    listener.disarm()
    listener.trigger(signal.SIGTERM)

    assert recorder.events == []


def test_disarm_restores_previous_handlers():
    previous = signal.getsignal(signal.SIGTERM)
    listener = _listener(Recorder())

    listener.arm()
    assert signal.getsignal(signal.SIGTERM) == listener._handle
    listener.disarm()

    assert signal.getsignal(signal.SIGTERM) == previous


def test_listener_can_be_armed_again_after_disarm():
    recorder = Recorder()
    listener = _listener(recorder)

    listener.arm()
    listener.disarm()
    listener.arm()
    listener.trigger(signal.SIGTERM)
    _wait_for_listener(listener)
    listener.disarm()

    assert recorder.events == ["cleanup", ("exit", EXIT_INTERRUPTED)]
