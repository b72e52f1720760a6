from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .logging import get_logger
from .model import UpdateKind
from .telegram.types import TelegramUpdate

logger = get_logger(__name__)


@runtime_checkable
class UpdateHandler(Protocol):
    name: str
    accepted_kinds: frozenset[UpdateKind]

    def can_handle(self, update: TelegramUpdate) -> bool: ...

    async def handle(self, update: TelegramUpdate) -> None: ...


class UpdateRouter:
    """Runs each update through the first handler that accepts it.

    Handlers are consulted in registration order and at most one runs per
    update. The handler list is fixed at construction, so concurrent
    ``dispatch`` calls share nothing mutable here.
    """

    def __init__(self, handlers: Iterable[UpdateHandler]) -> None:
        self._handlers = tuple(handlers)

    @property
    def handlers(self) -> tuple[UpdateHandler, ...]:
        return self._handlers

    def select(self, update: TelegramUpdate) -> UpdateHandler | None:
        for handler in self._handlers:
            if update.kind not in handler.accepted_kinds:
                continue
            try:
                matched = handler.can_handle(update)
            except Exception:
                logger.exception(
                    "router.predicate.failed",
                    handler=handler.name,
                    update_id=update.update_id,
                )
                continue
            if matched:
                return handler
        return None

    async def dispatch(self, update: TelegramUpdate) -> bool:
        """Return whether a handler was selected for ``update``.

        A failing handler is logged and counts as handled; it is not retried
        and never propagates.
        """
        handler = self.select(update)
        if handler is None:
            logger.debug(
                "router.unhandled", update_id=update.update_id, kind=update.kind
            )
            return False
        logger.debug(
            "router.dispatch", update_id=update.update_id, handler=handler.name
        )
        try:
            await handler.handle(update)
        except Exception:
            logger.exception(
                "router.handler.failed",
                handler=handler.name,
                update_id=update.update_id,
                kind=update.kind,
            )
        return True
