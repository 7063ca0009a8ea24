"""Broadcast channel connecting the host and the control panel.

Every context sees every message, its own included, so receivers filter on
the ``source`` tag. Delivery is queued on the Qt event loop and happens in
arrival order: a message posted from inside a handler waits until that
handler returns.
"""

from __future__ import annotations

from collections import deque
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping

from loguru import logger
from PyQt5 import QtCore

from .errors import ChannelError

Message = Mapping[str, Any]
Receiver = Callable[[Message], None]

# panel -> host
READY = "ready"
SELECT_VISUALIZER = "select-visualizer"
SET_QUALITY = "set-quality"
SAVE_QUALITY_DEFAULTS = "save-quality-defaults"
CLEAR_QUALITY_OVERRIDES = "clear-quality-overrides"
SET_FV3_PARAM = "set-fv3-param"
APPLY_FV3_PARAMS = "apply-fv3-params"
SET_SHADER_UNIFORM = "set-shader-uniform"
RESIZE = "resize"

# host -> panel
INIT = "init"
VISUALIZER_CHANGED = "visualizer-changed"
QUALITY_UPDATE = "quality-update"
VISUALIZER_LIST_UPDATE = "visualizer-list-update"
FV3_PARAMS = "fv3-params"


def validate_message(message: Any) -> Message:
    """Return ``message`` when it looks like a channel message, else raise."""

    if not isinstance(message, Mapping):
        raise ChannelError(f"message is not a mapping: {type(message).__name__}")
    msg_type = message.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise ChannelError(f"message without a valid type: {msg_type!r}")
    return message


def make_message(source: str, msg_type: str, **payload: Any) -> Message:
    data: Dict[str, Any] = dict(payload)
    data["source"] = source
    data["type"] = msg_type
    return MappingProxyType(data)


class LocalChannel(QtCore.QObject):
    """In-process broadcast channel with in-order, queued delivery."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._queue: Deque[Message] = deque()
        self._receivers: List[Receiver] = []
        self._flush_scheduled = False
        self._delivering = False

    def post(self, message: Mapping[str, Any]) -> None:
        frozen = message if isinstance(message, MappingProxyType) else MappingProxyType(dict(message))
        self._queue.append(frozen)
        if not self._flush_scheduled:
            self._flush_scheduled = True
            QtCore.QTimer.singleShot(0, self.flush)

    def subscribe(self, receiver: Receiver) -> None:
        if receiver not in self._receivers:
            self._receivers.append(receiver)

    def unsubscribe(self, receiver: Receiver) -> None:
        if receiver in self._receivers:
            self._receivers.remove(receiver)

    def pending(self) -> int:
        return len(self._queue)

    def flush(self) -> int:
        """Deliver queued messages now. Returns how many were delivered."""

        self._flush_scheduled = False
        if self._delivering:
            return 0
        delivered = 0
        self._delivering = True
        try:
            while self._queue:
                message = self._queue.popleft()
                delivered += 1
                for receiver in list(self._receivers):
                    try:
                        receiver(message)
                    except Exception:  # pylint: disable=broad-except
                        # Une exception dans un slot Qt ferait avorter le process
                        logger.exception("receiver {!r} failed on {}", receiver, message.get("type"))
        finally:
            self._delivering = False
        return delivered


class ChannelEndpoint:
    """One context's view of the channel: stamps ``source`` on what it sends."""

    def __init__(self, channel: LocalChannel, source: str):
        self.channel = channel
        self.source = source

    def send(self, msg_type: str, **payload: Any) -> Message:
        message = make_message(self.source, msg_type, **payload)
        logger.debug("{} -> {} {}", self.source, msg_type, dict(payload) if payload else "")
        self.channel.post(message)
        return message

    def listen(self, receiver: Receiver) -> None:
        self.channel.subscribe(receiver)

    def close(self, receiver: Receiver) -> None:
        self.channel.unsubscribe(receiver)
