from __future__ import annotations

import re
from collections.abc import Callable
from collections.abc import Generator
from collections.abc import Mapping
from contextlib import contextmanager
from functools import update_wrapper
from types import MappingProxyType
from typing import Any
from typing import ClassVar
from typing import Self

import structlog

from . import registry
from .delivery import DeliveryHandle
from .message import Message
from .rescue import RESCUE_ATTRIBUTE
from .rescue import Handler
from .rescue import Matcher
from .rescue import Rescuer
from .rescue import method_handler
from .templates import Catalog
from .templates import TemplateCatalog
from .transport import Transport

logger = structlog.get_logger()


class UnknownAction(LookupError):
    """The composer has no action by the requested name."""

    def __init__(self, composer: type[Composer], action: str):
        super().__init__(f"{composer.__qualname__} has no action {action!r}")
        self.composer = composer
        self.action = action


class Action:
    """A composer method that builds a message.

    Looked up on an instance it is the plain bound method. Looked up on the
    class it defers the call, returning a ``DeliveryHandle`` instead of
    running anything.
    """

    def __init__(self, fn: Callable[..., Any]):
        self.fn = fn
        self.name = fn.__name__
        update_wrapper(self, fn)

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r}>"

    def __set_name__(self, owner: type, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is not None:
            return self.fn.__get__(instance, owner)
        if owner is None:
            return self

        def defer(*args: Any, **kwargs: Any) -> DeliveryHandle:
            return owner.invoke(self.name, *args, **kwargs)

        update_wrapper(defer, self.fn)
        return defer


def action(fn: Callable[..., Any]) -> Action:
    """Decorate a composer method to make it an action."""
    return Action(fn)


def underscore(name: str) -> str:
    """Convert ``CamelCase`` into ``camel_case``."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name).lower()


class Composer:
    """Compose outbound SMS messages from named actions.

    Subclasses declare actions with ``@action``, each of which calls
    ``sms()`` to build its message::

        class Notifier(Composer, defaults={"from_": "+15550000000"}):
            @action
            def welcome(self, to, name):
                self.sms(to=to, context={"name": name})

        Notifier.welcome("+15551234567", "Ada").deliver_later()
    """

    actions: ClassVar[Mapping[str, Action]] = MappingProxyType({})
    defaults: ClassVar[Mapping[str, Any]] = MappingProxyType({})
    rescuer: ClassVar[Rescuer] = Rescuer()
    composer_name: ClassVar[str] = "composer"
    composer_path: ClassVar[str] = f"{__name__}.Composer"
    queue: ClassVar[str] = "sms"

    def __init_subclass__(
        cls,
        *,
        defaults: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init_subclass__(**kwargs)

        actions = dict(cls.actions)
        for name, attribute in vars(cls).items():
            if isinstance(attribute, Action):
                actions[name] = attribute
            else:
                actions.pop(name, None)
        cls.actions = MappingProxyType(actions)

        cls.rescuer = Rescuer(parent=cls.rescuer)
        for name, attribute in vars(cls).items():
            if matchers := getattr(attribute, RESCUE_ATTRIBUTE, None):
                cls.rescuer.add(*matchers, handler=method_handler(name))

        if defaults:
            cls.default(**defaults)
        if "composer_name" not in vars(cls):
            cls.composer_name = underscore(cls.__name__)
        cls.composer_path = f"{cls.__module__}.{cls.__qualname__}"
        registry.register(cls)

    def __init__(
        self,
        *,
        defaults: Mapping[str, Any] | None = None,
        templates: Catalog | None = None,
        transport: Transport | None = None,
    ):
        self.defaults = MappingProxyType(
            dict(type(self).defaults if defaults is None else defaults)
        )
        self.templates = templates if templates is not None else TemplateCatalog()
        self.transport = transport
        self.action_name: str | None = None
        self.message: Message | None = None

    def __repr__(self):
        return f"<{type(self).__qualname__} action={self.action_name!r}>"

    @classmethod
    def default(cls, **values: Any) -> Mapping[str, Any]:
        """Merge values into the class defaults and return them."""
        if values:
            cls.defaults = MappingProxyType({**cls.defaults, **values})
        return cls.defaults

    @classmethod
    def rescue_from(cls, *matchers: Matcher, handler: Handler):
        cls.rescuer.add(*matchers, handler=handler)

    @classmethod
    def invoke(cls, action_name: str, /, *args: Any, **kwargs: Any) -> DeliveryHandle:
        """Defer a call to the named action."""
        if action_name not in cls.actions and (
            cls.action_missing is Composer.action_missing
        ):
            raise UnknownAction(cls, action_name)
        return DeliveryHandle(cls, action_name, args, kwargs)

    def process(self, action_name: str, /, *args: Any, **kwargs: Any):
        self.action_name = action_name
        if action_name in self.actions:
            getattr(self, action_name)(*args, **kwargs)
        else:
            self.action_missing(action_name, *args, **kwargs)
        logger.debug(
            "sms_composed",
            composer=self.composer_path,
            action=action_name,
            composed=self.message is not None,
        )

    def action_missing(self, action_name: str, /, *args: Any, **kwargs: Any):
        """Handle a name that isn't a declared action.

        Override to build messages for dynamic action names.
        """
        raise UnknownAction(type(self), action_name)

    def sms(
        self,
        *,
        to: str,
        body: str | None = None,
        from_: str | None = None,
        callback: str | None = None,
        context: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Message:
        """Build the message for this action.

        Only the first call builds anything; later calls return the same
        message.
        """
        if self.message is not None:
            return self.message

        defaults = dict(self.defaults)
        from_ = from_ or defaults.pop("from_", None)
        callback = callback or defaults.pop("callback", None)
        # Whatever is left of the defaults become default options
        defaults.pop("from_", None)
        defaults.pop("callback", None)
        if not from_:
            raise ValueError(
                f"No sender for {self.composer_name}.{self.action_name}. "
                "Pass from_ or set a 'from_' default."
            )

        self.message = Message(
            to=to,
            from_=from_,
            body=body if body is not None else self.default_body(context),
            callback=callback,
            options={**defaults, **options},
        )
        return self.message

    def default_body(self, interpolations: Mapping[str, Any] | None = None) -> str:
        if self.action_name is None:
            raise RuntimeError("A default body needs an action being processed")
        return self.templates.lookup(
            f"{self.composer_name}.{self.action_name}", interpolations
        )

    def handle_exception(self, exception: BaseException, /) -> Any:
        """Pass the exception to its rescue handler, or re-raise it."""
        return self.rescuer.handle(self, exception)

    @contextmanager
    def handle_exceptions(self) -> Generator[Self]:
        try:
            yield self
        except Exception as exception:
            self.handle_exception(exception)
