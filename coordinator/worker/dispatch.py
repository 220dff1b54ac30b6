from __future__ import annotations

from typing import Callable, Mapping

from ..errors import UnexpectedMessageTag
from .wire import DataReader

Handler = Callable[[DataReader], None]


class TagRouter:
    """Dispatcher that hands each record to the handler registered for its tag.

    Each handler must read exactly the bytes of its record. A tag with no
    handler raises UnexpectedMessageTag, which fails the session.
    """

    def __init__(self, handlers: Mapping[int, Handler]) -> None:
        self._handlers = dict(handlers)

    def dispatch(self, tag: int, reader: DataReader) -> None:
        handler = self._handlers.get(tag)
        if handler is None:
            raise UnexpectedMessageTag(tag)
        handler(reader)
