from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class SessionEvents:
    """Fan-out for "session cannot be recovered" notifications."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    @property
    def listeners(self) -> List[Listener]:
        return list(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("session expired listener %r failed", listener)
