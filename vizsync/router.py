"""Inbound message routing for one context of the channel."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Set

from loguru import logger

from .channel import QUALITY_UPDATE, VISUALIZER_CHANGED, Message, validate_message
from .errors import ChannelError

Handler = Callable[[Message], None]

# Ordre de rejeu : le visualiseur d'abord, la qualité ensuite
REPLAY_ORDER = (VISUALIZER_CHANGED, QUALITY_UPDATE)


class MessageRouter:
    """Filter self-echo, dispatch by type, hold early messages until ready.

    ``is_ready`` reports whether the control surface exists. Messages of a
    buffered type that arrive before that are kept, one per type, and handled
    by :meth:`replay` once the surface has been built.
    """

    def __init__(self, source: str, is_ready: Callable[[], bool]):
        self.source = source
        self._is_ready = is_ready
        self._handlers: Dict[str, Handler] = {}
        self._buffered_types: Set[str] = set()
        self._buffer: "OrderedDict[str, Message]" = OrderedDict()
        self._replayed = False

    def register(self, msg_type: str, handler: Handler, buffered: bool = False) -> None:
        self._handlers[msg_type] = handler
        if buffered:
            self._buffered_types.add(msg_type)
        else:
            self._buffered_types.discard(msg_type)

    def pending(self, msg_type: str) -> Optional[Message]:
        return self._buffer.get(msg_type)

    def dispatch(self, message: Any) -> bool:
        """Route one inbound message. Returns True when a handler ran."""

        if not hasattr(message, "get"):
            logger.debug("dropped non-mapping message: {!r}", message)
            return False
        # Écho de nos propres messages : rejeté avant toute autre vérification
        if message.get("source") == self.source:
            return False
        try:
            validate_message(message)
        except ChannelError as exc:
            logger.debug("dropped message: {}", exc)
            return False

        msg_type = message["type"]
        handler = self._handlers.get(msg_type)
        if handler is None:
            return False
        if msg_type in self._buffered_types and not self._is_ready():
            self._buffer[msg_type] = message
            logger.debug("buffered {} until the surface exists", msg_type)
            return False
        return self._run(handler, message)

    def replay(self) -> int:
        """Handle each buffered message once, in fixed order. Returns the count."""

        if self._replayed:
            self._buffer.clear()
            return 0
        self._replayed = True
        handled = 0
        pending = dict(self._buffer)
        self._buffer.clear()
        for msg_type in REPLAY_ORDER:
            message = pending.pop(msg_type, None)
            if message is None:
                continue
            handler = self._handlers.get(msg_type)
            if handler is not None and self._run(handler, message):
                handled += 1
        for msg_type, message in pending.items():
            handler = self._handlers.get(msg_type)
            if handler is not None and self._run(handler, message):
                handled += 1
        return handled

    def _run(self, handler: Handler, message: Message) -> bool:
        try:
            handler(message)
        except Exception:  # pylint: disable=broad-except
            logger.exception("handler for {} failed", message.get("type"))
            return False
        return True
