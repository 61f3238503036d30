"""In-process event publishing for token notifications.

``publish`` only enqueues; handlers run on the executor's worker threads.
A failing handler is logged and never reaches the publisher's caller.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from tokenguard.services.credentials import IssuedToken

logger = logging.getLogger("tokenguard")

Handler = Callable[[Any], None]


@dataclass(frozen=True)
class ActivationTokenCreated:
    email: str
    token: IssuedToken


@dataclass(frozen=True)
class PasswordResetTokenCreated:
    email: str
    token: IssuedToken


class EventPublisher:
    """Dispatches events to handlers registered per event type.

    Without an executor, handlers run inline on the publishing thread, which
    keeps tests deterministic.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: object) -> None:
        for handler in list(self._handlers.get(type(event), [])):
            if self._executor is None:
                self._deliver(handler, event)
                continue
            try:
                self._executor.submit(self._deliver, handler, event)
            except RuntimeError:
                logger.exception("Could not enqueue %s for %r", type(event).__name__, handler)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    @staticmethod
    def _deliver(handler: Handler, event: object) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception("Delivery of %s to %r failed", type(event).__name__, handler)


_event_publisher: EventPublisher | None = None


def get_event_publisher() -> EventPublisher:
    """Get singleton event publisher with the mail sender subscribed."""
    global _event_publisher
    if _event_publisher is None:
        from tokenguard.config import get_settings
        from tokenguard.services.mail import ConsoleMailSender

        _event_publisher = EventPublisher(ThreadPoolExecutor(max_workers=2, thread_name_prefix="tokenguard-events"))
        ConsoleMailSender(get_settings().APP_BASE_URL).register(_event_publisher)
    return _event_publisher
