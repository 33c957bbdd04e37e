"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

A middleware is any callable that takes the RequestContext and mutates it
in place. The return value is ignored; a coroutine is awaited.

    def add_user(ctx):                  async def load_session(ctx):
        ctx.payload = {"user": 1}           ctx.payload = await fetch(...)

=============================================================================
CHAIN EXECUTION
=============================================================================

Unlike an onion-style pipeline there is no ``next``: middlewares run one
after another, each awaited to completion, BEFORE routing:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   RequestContext                                                     │
    │        │                                                             │
    │        ▼                                                             │
    │   [0] BodyParser          ← built in, always first                   │
    │        │                                                             │
    │        ▼                                                             │
    │   [1] first use()'d middleware                                       │
    │        │                                                             │
    │        ▼                                                             │
    │   [n] last use()'d middleware                                        │
    │        │                                                             │
    │        ▼                                                             │
    │   Router.dispatch()                                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

If any middleware raises, the rest of the chain and the handler are
skipped and the exception reaches the dispatcher's error handling.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Union

from ..http.request import RequestContext
from ..invoke import invoke

logger = logging.getLogger(__name__)

MiddlewareFunc = Callable[[RequestContext], Union[None, Awaitable[None]]]


class Middleware(ABC):
    """
    Base class for class-based middleware.

    Subclasses implement ``__call__``, sync or async:

        class RequireJSON(Middleware):
            def __call__(self, ctx):
                if ctx.content_type != "application/json":
                    raise ValueError("JSON only")

    Plain functions work just as well; the class only adds a ``name`` for
    logging.
    """

    @abstractmethod
    def __call__(self, context: RequestContext) -> Any:
        """Inspect or mutate the context. The return value is ignored."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


def middleware_name(middleware: Any) -> str:
    """Readable name for any middleware callable."""
    if isinstance(middleware, Middleware):
        return middleware.name
    return getattr(middleware, "__qualname__", None) or repr(middleware)


class MiddlewareChain:
    """
    Ordered, append-only middleware sequence with a pinned first element.

    Usage:
        chain = MiddlewareChain(BodyParser())
        chain.add(authenticate).add(load_user)

        await chain.run(ctx)   # BodyParser, authenticate, load_user
    """

    def __init__(self, first: Optional[MiddlewareFunc] = None):
        # built-in middleware that always runs before user middleware
        self._first = first
        self._middleware: List[MiddlewareFunc] = []

    def add(self, middleware: MiddlewareFunc) -> "MiddlewareChain":
        """
        Append a middleware.

        Raises:
            TypeError: If the middleware is not callable.
        """
        if not callable(middleware):
            raise TypeError(f"Middleware {middleware!r} is not callable")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware_name(middleware)}")
        return self

    def use(self, *middleware: MiddlewareFunc) -> "MiddlewareChain":
        """Append several middlewares at once."""
        for mw in middleware:
            self.add(mw)
        return self

    async def run(self, context: RequestContext) -> None:
        """Run every middleware in order, awaiting each one fully."""
        for middleware in self:
            await invoke(middleware, context)

    def __len__(self) -> int:
        return len(self._middleware) + (1 if self._first is not None else 0)

    def __iter__(self) -> Iterator[MiddlewareFunc]:
        if self._first is not None:
            yield self._first
        yield from list(self._middleware)
