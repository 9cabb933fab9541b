from __future__ import annotations

from collections.abc import Callable
from typing import Any
from typing import TypeAlias
from typing import TypeVar

Matcher: TypeAlias = type[BaseException] | str | Callable[[BaseException], bool]
Handler: TypeAlias = Callable[[Any, BaseException], Any]

F = TypeVar("F", bound=Callable[..., Any])

RESCUE_ATTRIBUTE = "__smsio_rescues__"


def matches(matcher: Matcher, exception: BaseException, /) -> bool:
    """Check whether a single matcher accepts the exception.

    String matchers are compared against the names in the exception's MRO,
    either the bare class name or the full ``module.QualName`` path, so a
    handler can be declared for an exception class that isn't importable.
    """
    if isinstance(matcher, type):
        return isinstance(exception, matcher)
    if isinstance(matcher, str):
        return any(
            matcher in (cls.__name__, f"{cls.__module__}.{cls.__qualname__}")
            for cls in type(exception).__mro__
        )
    if callable(matcher):
        return bool(matcher(exception))
    raise TypeError(f"Unsupported rescue matcher: {matcher!r}")


class Rescuer:
    """An ordered registry of exception handlers.

    Handlers registered directly on a rescuer are consulted in declaration
    order before the handlers of its parent.
    """

    def __init__(self, parent: Rescuer | None = None):
        self.__parent = parent
        self.__handlers: list[tuple[tuple[Matcher, ...], Handler]] = []

    def __repr__(self):
        return f"<{type(self).__name__} handlers={len(self.handlers())}>"

    def add(self, *matchers: Matcher, handler: Handler):
        if not matchers:
            raise ValueError("At least one matcher is required")
        if not callable(handler):
            raise TypeError(f"Rescue handler must be callable, got: {handler!r}")
        self.__handlers.append((matchers, handler))

    def handlers(self) -> list[tuple[tuple[Matcher, ...], Handler]]:
        inherited = self.__parent.handlers() if self.__parent else []
        return [*self.__handlers, *inherited]

    def find(self, exception: BaseException, /) -> Handler | None:
        for matchers, handler in self.handlers():
            if any(matches(matcher, exception) for matcher in matchers):
                return handler
        return None

    def handle(self, receiver: Any, exception: BaseException, /) -> Any:
        """Run the first matching handler, or re-raise the exception."""
        handler = self.find(exception)
        if handler is None:
            raise exception
        return handler(receiver, exception)


def rescue_from(*matchers: Matcher):
    """Decorate a composer method to handle exceptions matching any matcher."""
    if not matchers:
        raise ValueError("At least one matcher is required")

    def mark(fn: F) -> F:
        setattr(fn, RESCUE_ATTRIBUTE, (*getattr(fn, RESCUE_ATTRIBUTE, ()), *matchers))
        return fn

    return mark


def method_handler(name: str, /) -> Handler:
    """Build a handler that calls the receiver's method by name.

    Looking the method up when handling lets subclasses override it. A class
    receiver, as used when a job fails, is passed to the method as ``self``.
    """

    def handler(receiver: Any, exception: BaseException) -> Any:
        method = getattr(receiver, name)
        if isinstance(receiver, type):
            return method(receiver, exception)
        return method(exception)

    handler.__qualname__ = f"method_handler({name!r})"
    return handler
