"""Background execution for network calls and text loading."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from typesetgo.core.errors import ServiceError

logger = logging.getLogger(__name__)


class _CallSignals(QObject):
    done = Signal(object)
    failed = Signal(object)


class _CallWorker(QRunnable):
    def __init__(self, call: Callable[[], Any]) -> None:
        super().__init__()
        self.call = call
        self.signals = _CallSignals()

    def run(self) -> None:
        try:
            result = self.call()
        except ServiceError as e:
            self.signals.failed.emit(e)
            return
        except Exception as e:
            logger.exception("Background call crashed")
            self.signals.failed.emit(e)
            return
        self.signals.done.emit(result)


class QtDispatcher(QObject):
    """Runs calls on a private single-thread pool, in submission order.

    Results come back on the thread that owns the dispatcher (the GUI
    thread) through queued signals, so callbacks may touch engine state.
    """

    _deliver = Signal(object)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._pool = QThreadPool(self)
        self._pool.setMaxThreadCount(1)
        self._workers: set[_CallWorker] = set()
        self._deliver.connect(self._on_deliver)

    def submit(
        self,
        call: Callable[[], Any],
        on_done: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        worker = _CallWorker(call)
        worker.setAutoDelete(False)
        self._workers.add(worker)

        def _finish(callback: Optional[Callable[[Any], None]], value: Any) -> None:
            self._workers.discard(worker)
            if callback is not None:
                callback(value)

        worker.signals.done.connect(lambda result: self._deliver.emit(lambda: _finish(on_done, result)))
        worker.signals.failed.connect(lambda error: self._deliver.emit(lambda: _finish(on_error, error)))
        self._pool.start(worker)

    def wait_for_done(self, msecs: int = -1) -> bool:
        return self._pool.waitForDone(msecs)

    @Slot(object)
    def _on_deliver(self, thunk: Callable[[], None]) -> None:
        thunk()
