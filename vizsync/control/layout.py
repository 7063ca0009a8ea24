from __future__ import annotations

from typing import Callable, Optional, Tuple

from PyQt5 import QtCore

from ..channel import RESIZE
from .config import FRAME_INTERVAL_MS, MIN_PANEL_SIZE


class LayoutFeedback(QtCore.QObject):
    """Report the panel content size upstream, at most once per frame.

    :meth:`notify` never measures right away: the layout has to settle first.
    Calls made before the pending measurement fires are merged into it.
    """

    measured = QtCore.pyqtSignal(int, int)

    def __init__(
        self,
        measure: Callable[[], Tuple[int, int]],
        send: Callable[..., object],
        min_size: Tuple[int, int] = MIN_PANEL_SIZE,
        interval_ms: int = FRAME_INTERVAL_MS,
        parent=None,
    ):
        super().__init__(parent)
        self._measure = measure
        self._send = send
        self._min_w, self._min_h = min_size
        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._report)
        self.last_size: Optional[Tuple[int, int]] = None

    @property
    def scheduled(self) -> bool:
        return self._timer.isActive()

    def notify(self) -> None:
        if not self._timer.isActive():
            self._timer.start()

    def flush(self) -> None:
        if self._timer.isActive():
            self._timer.stop()
            self._report()

    def stop(self) -> None:
        self._timer.stop()

    def _report(self) -> None:
        width, height = self._measure()
        size = (max(self._min_w, int(width)), max(self._min_h, int(height)))
        self.last_size = size
        self._send(RESIZE, width=size[0], height=size[1])
        self.measured.emit(*size)

    def eventFilter(self, watched, event):  # noqa: N802 (Qt API)
        if event.type() in (QtCore.QEvent.Resize, QtCore.QEvent.LayoutRequest):
            self.notify()
        return False
