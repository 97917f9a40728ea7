"""Ordered subscriber registry used by :class:`loop_ledger.cache.LedgerCache`.

Subscribers are zero-argument callables. ``notify()`` calls them
synchronously in registration order; an exception raised by one subscriber is
logged and does not stop the others from being called.
"""

from __future__ import annotations

from collections.abc import Callable

from .logging_setup import get_logger

type Subscriber = Callable[[], None]
type Unsubscribe = Callable[[], None]

_logger = get_logger("loop_ledger.notify")


class SubscriberRegistry:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, fn: Subscriber) -> Unsubscribe:
        """Register ``fn`` and return a callable that removes it again.

        Subscribing the same callable twice is a no-op; unsubscribing twice is
        harmless.
        """

        if fn not in self._subscribers:
            self._subscribers.append(fn)

        def _unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return _unsubscribe

    def notify(self) -> None:
        # Snapshot so subscribers may unsubscribe while being notified.
        for fn in list(self._subscribers):
            try:
                fn()
            except Exception:
                _logger.exception("notify:subscriber_failed subscriber=%r", fn)


__all__ = ["Subscriber", "SubscriberRegistry", "Unsubscribe"]
