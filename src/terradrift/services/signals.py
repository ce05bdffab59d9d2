"""Interrupt handling for a drift run."""

import os
import signal
import threading
from typing import Callable, Optional, Sequence

from terradrift.constants import EXIT_INTERRUPTED


class SignalListener:
    """Races SIGINT/SIGTERM against normal completion on a background thread.

    On a signal the ``on_signal`` callback runs and the process exits
    immediately through ``exit_func`` (``os._exit``), skipping ``finally``
    blocks. The run lock is therefore left behind and reclaimed by the next
    run once it is stale. Whichever side happens first wins; the other
    becomes a no-op.
    """

    def __init__(
        self,
        logger,
        on_signal: Callable[[], None],
        exit_func: Callable[[int], None] = os._exit,
        signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM),
    ):
        self.logger = logger
        self.on_signal = on_signal
        self.exit_func = exit_func
        self.signals = tuple(signals)
        self._wakeup = threading.Event()
        self._lock = threading.Lock()
        self._finished = False
        self._received: Optional[int] = None
        self._previous_handlers = {}
        self._thread: Optional[threading.Thread] = None

    def arm(self):
        with self._lock:
            self._finished = False
            self._received = None
        self._wakeup.clear()

        if threading.current_thread() is threading.main_thread():
            for signum in self.signals:
                self._previous_handlers[signum] = signal.signal(signum, self._handle)
        else:
            self.logger.debug("Not on the main thread; signal handlers were not installed.")

        self._thread = threading.Thread(target=self._listen, name="terradrift-signals", daemon=True)
        self._thread.start()

    def disarm(self):
        with self._lock:
            self._finished = True
        self._wakeup.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._restore_handlers()

    def trigger(self, signum: int):
        """Delivers ``signum`` as if the OS had sent it."""
        self._handle(signum, None)

    def _handle(self, signum, _frame):
        self._received = signum
        self._wakeup.set()

    def _listen(self):
        self._wakeup.wait()
        with self._lock:
            if self._finished:
                return
            self._finished = True

        name = signal.Signals(self._received).name
        self.logger.info("Received signal %s, initiating shutdown...", name)
        try:
            self.on_signal()
            self.logger.info("Cleaned up authentication environment variables")
        finally:
            self.exit_func(EXIT_INTERRUPTED)

    def _restore_handlers(self):
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers = {}
