from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime
from typing import TYPE_CHECKING
from typing import Any
from typing import Self

import structlog

from . import arguments
from .arguments import DeserializationFailure
from .id import random_id
from .registry import resolve

if TYPE_CHECKING:
    from .composer import Composer

logger = structlog.get_logger()

DELIVERY_METHODS = frozenset({"deliver_now", "deliver_now_bypass_safety"})


@dataclass(eq=False, kw_only=True)
class DeliveryJob:
    """A delivery to perform later, possibly in another process.

    The arguments are kept in their serialized form and only decoded when
    the job is performed, so the composer can still be found to handle the
    error when an argument fails to decode.
    """

    id: str = field(default_factory=random_id)
    composer: str
    action: str
    delivery: str
    queue: str
    run_at: datetime | None = None
    serialized_args: list[Any] = field(default_factory=list)
    serialized_kwargs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        *,
        composer: str,
        action: str,
        delivery: str,
        queue: str,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
        run_at: datetime | None = None,
    ) -> Self:
        if delivery not in DELIVERY_METHODS:
            raise ValueError(f"Unsupported delivery method: {delivery!r}")
        return cls(
            composer=composer,
            action=action,
            delivery=delivery,
            queue=queue,
            run_at=run_at,
            serialized_args=[arguments.serialize(arg) for arg in args],
            serialized_kwargs={
                key: arguments.serialize(value)
                for key, value in (kwargs or {}).items()
            },
        )

    def __repr__(self):
        params_repr = ", ".join(
            (
                *map(repr, self.serialized_args),
                *(f"{k}={v!r}" for k, v in self.serialized_kwargs.items()),
            ),
        )
        return (
            f"<{type(self).__name__} {self.id!r} "
            f"{self.composer}.{self.action}({params_repr}).{self.delivery}()>"
        )

    @property
    def args(self) -> tuple[Any, ...]:
        return tuple(arguments.deserialize(arg) for arg in self.serialized_args)

    @property
    def kwargs(self) -> dict[str, Any]:
        return {
            key: arguments.deserialize(value)
            for key, value in self.serialized_kwargs.items()
        }

    def delay(self, now: datetime | None = None) -> float:
        """Seconds left until the job is due."""
        if self.run_at is None:
            return 0.0
        now = now or datetime.now(UTC)
        return max(0.0, (self.run_at - now).total_seconds())

    @property
    def due(self) -> bool:
        return self.delay() <= 0

    def composer_class(self) -> type[Composer] | None:
        """Resolve the composer class from the raw job data alone.

        Any failure to resolve it gives None, so the job's own exception is
        the one that propagates.
        """
        try:
            return resolve(self.composer)
        except Exception:
            logger.exception("job_composer_unresolved", composer=self.composer)
            return None

    def perform(self) -> Any:
        if self.delivery not in DELIVERY_METHODS:
            raise ValueError(f"Unsupported delivery method: {self.delivery!r}")
        composer = resolve(self.composer)
        handle = composer.invoke(self.action, *self.args, **self.kwargs)
        return getattr(handle, self.delivery)()

    def run(self) -> Any:
        """Perform the job, letting the composer class rescue any failure."""
        try:
            return self.perform()
        except Exception as exception:
            composer = self.composer_class()
            if composer is None:
                raise
            logger.debug(
                "job_rescuing",
                job_id=self.id,
                composer=self.composer,
                error=repr(exception),
            )
            return composer.rescuer.handle(composer, exception)


def serialize(job: DeliveryJob, /) -> bytes:
    return json.dumps(
        {
            "id": job.id,
            "composer": job.composer,
            "action": job.action,
            "delivery": job.delivery,
            "queue": job.queue,
            "run_at": job.run_at.isoformat() if job.run_at else None,
            "args": job.serialized_args,
            "kwargs": job.serialized_kwargs,
        }
    ).encode()


def deserialize(serialized: bytes, /) -> DeliveryJob:
    try:
        data = json.loads(serialized.decode())
        run_at = data.get("run_at")
        return DeliveryJob(
            id=data["id"],
            composer=data["composer"],
            action=data["action"],
            delivery=data["delivery"],
            queue=data["queue"],
            run_at=datetime.fromisoformat(run_at) if run_at else None,
            serialized_args=list(data.get("args", [])),
            serialized_kwargs=dict(data.get("kwargs", {})),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as error:
        raise DeserializationFailure(f"Malformed delivery job: {error}") from error
