"""Readiness handshake of the control panel.

The panel cannot know when the host starts listening, so it repeats ``ready``
until the host answers with ``init``.
"""

from __future__ import annotations

from typing import Callable

from loguru import logger
from PyQt5 import QtCore

from .channel import READY
from .control.config import READY_INTERVAL_MS


class HandshakeManager(QtCore.QObject):
    """Send ``ready`` now, then on every tick, until :meth:`acknowledge`."""

    stopped = QtCore.pyqtSignal()

    def __init__(self, send: Callable[..., object], interval_ms: int = READY_INTERVAL_MS, parent=None):
        super().__init__(parent)
        self._send = send
        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(interval_ms)))
        self._timer.timeout.connect(self._pulse)
        self._acknowledged = False
        self.pulses = 0

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    def start(self) -> None:
        if self._acknowledged or self._timer.isActive():
            return
        self._pulse()
        self._timer.start()

    def acknowledge(self) -> None:
        """Stop pulsing for good. Calling it again does nothing."""

        if self._acknowledged:
            return
        self._acknowledged = True
        self._timer.stop()
        logger.debug("handshake acknowledged after {} ready pulse(s)", self.pulses)
        self.stopped.emit()

    def _pulse(self) -> None:
        if self._acknowledged:
            # un tick déjà en file après l'arrêt
            self._timer.stop()
            return
        self.pulses += 1
        self._send(READY)
