from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from typing import TYPE_CHECKING
from typing import Any
from typing import Generic
from typing import TypeVar

import structlog

from .job import DeliveryJob
from .message import Message
from .smsio import Smsio
from .transport import DeliveryResult

if TYPE_CHECKING:
    from .composer import Composer

logger = structlog.get_logger()


class UnsafeScheduling(RuntimeError):
    """Later delivery was requested for a message that was already built."""


C = TypeVar("C", bound="Composer")


class DeliveryHandle(Generic[C]):
    """A deferred call to a composer action.

    Nothing runs until the message is needed: reading ``message`` or
    delivering now processes the action once and keeps the result. A handle
    that hasn't been processed can instead be scheduled with
    ``deliver_later``, which sends only the action arguments to a job::

        Notifier.welcome("+15551234567", "Ada")                 # a handle
        Notifier.welcome("+15551234567", "Ada").deliver_now()   # sends it
        Notifier.welcome("+15551234567", "Ada").deliver_later() # enqueues a job
        Notifier.welcome("+15551234567", "Ada").message         # the Message
    """

    def __init__(
        self,
        composer: type[C],
        action: str,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
    ):
        self.__composer_class = composer
        self.__action = action
        self.__args = tuple(args)
        self.__kwargs = dict(kwargs or {})
        self.__composer: C | None = None
        self.__message: Message | None = None

    def __repr__(self):
        params_repr = ", ".join(
            (
                *map(repr, self.__args),
                *(f"{k}={v!r}" for k, v in self.__kwargs.items()),
            ),
        )
        state = "processed" if self.processed else "unprocessed"
        return (
            f"<{type(self).__name__} "
            f"{self.__composer_class.__qualname__}.{self.__action}({params_repr}) "
            f"{state}>"
        )

    @property
    def composer_class(self) -> type[C]:
        return self.__composer_class

    @property
    def action(self) -> str:
        return self.__action

    @property
    def args(self) -> tuple[Any, ...]:
        return self.__args

    @property
    def kwargs(self) -> dict[str, Any]:
        return dict(self.__kwargs)

    @property
    def processed(self) -> bool:
        """Whether the action has run, so the message may have been touched."""
        return self.__composer is not None or self.__message is not None

    @property
    def composer(self) -> C:
        """The composer instance that processed the action."""
        if self.__composer is None:
            smsio = Smsio.current()
            composer = self.__composer_class(
                defaults=self.__composer_class.defaults,
                templates=smsio.templates,
                transport=smsio.transport,
            )
            composer.process(self.__action, *self.__args, **self.__kwargs)
            self.__composer = composer
        return self.__composer

    @property
    def message(self) -> Message | None:
        """The built message, or None if the action chose not to build one."""
        if self.__message is None:
            self.__message = self.composer.message
        return self.__message

    def deliver_now(self) -> DeliveryResult | None:
        """Deliver the message, honoring the transport's delivery policy."""
        return self.__deliver(checked=True)

    def deliver_now_bypass_safety(self) -> DeliveryResult | None:
        """Deliver the message, ignoring the transport's delivery policy.

        Delivery happens even if the transport has deliveries turned off, and
        failures are raised even if the transport would normally only log
        them, so use with caution.
        """
        return self.__deliver(checked=False)

    def deliver_later(
        self,
        *,
        wait: timedelta | float | None = None,
        wait_until: datetime | None = None,
        queue: str | None = None,
    ) -> DeliveryJob:
        """Enqueue a job that will call ``deliver_now``.

        ``wait`` delays the job by a duration and ``wait_until`` until a point
        in time. ``queue`` overrides the composer's queue.
        """
        return self.__enqueue(
            "deliver_now", wait=wait, wait_until=wait_until, queue=queue
        )

    def deliver_later_bypass_safety(
        self,
        *,
        wait: timedelta | float | None = None,
        wait_until: datetime | None = None,
        queue: str | None = None,
    ) -> DeliveryJob:
        """Enqueue a job that will call ``deliver_now_bypass_safety``."""
        return self.__enqueue(
            "deliver_now_bypass_safety", wait=wait, wait_until=wait_until, queue=queue
        )

    def __deliver(self, *, checked: bool) -> DeliveryResult | None:
        composer = self.composer
        with composer.handle_exceptions():
            message = self.message
            if message is None:
                logger.info(
                    "sms_not_composed",
                    composer=self.__composer_class.composer_path,
                    action=self.__action,
                )
                return None
            if composer.transport is None:
                raise RuntimeError(f"{composer!r} has no transport to deliver with")
            if checked:
                return composer.transport.send(message)
            return composer.transport.send_unchecked(message)
        return None

    def __enqueue(
        self,
        delivery: str,
        *,
        wait: timedelta | float | None,
        wait_until: datetime | None,
        queue: str | None,
    ) -> DeliveryJob:
        if self.processed:
            raise UnsafeScheduling(
                "The message was accessed before asking to deliver it later, so "
                "local changes to it could be silently lost: only the action "
                "arguments are passed to the delivery job. Don't access the "
                "message if you mean to deliver it later, change it only within "
                "the action, or enqueue a job of your own instead."
            )
        if wait is not None and wait_until is not None:
            raise ValueError("Pass either wait or wait_until, not both")

        run_at = None
        if wait is not None:
            if not isinstance(wait, timedelta):
                wait = timedelta(seconds=wait)
            run_at = datetime.now(UTC) + wait
        elif wait_until is not None:
            run_at = wait_until.astimezone(UTC)

        job = DeliveryJob.create(
            composer=self.__composer_class.composer_path,
            action=self.__action,
            delivery=delivery,
            args=self.__args,
            kwargs=self.__kwargs,
            queue=queue or self.__composer_class.queue,
            run_at=run_at,
        )
        Smsio.current().submit(job)
        return job
