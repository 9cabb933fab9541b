from __future__ import annotations

import importlib
import os
import tomllib
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING
from typing import Any
from typing import Self

import structlog

from .broker import Broker
from .job import DeliveryJob
from .job import serialize
from .queuespec import QueueSpec
from .receiver import Receiver
from .registry import COMPOSER_REGISTRY
from .registry import resolve
from .templates import Catalog
from .templates import TemplateCatalog
from .transport import Transport

if TYPE_CHECKING:
    from .composer import Composer

logger = structlog.get_logger()


class Smsio:
    """The collaborators that composers deliver through.

    Anything not passed in is configured from ``SMSIO_*`` environment
    variables, or else from ``[tool.smsio]`` in the nearest pyproject.toml.
    The broker is only created once something is enqueued or received, so
    immediate delivery works without one.
    """

    __current = ContextVar[Self | None]("Smsio.current", default=None)

    def __init__(
        self,
        *,
        broker: Broker | None = None,
        transport: Transport | None = None,
        templates: Catalog | None = None,
    ):
        self.__broker = broker
        self.__transport = (
            transport if transport is not None else self.__default_transport()
        )
        self.__templates = (
            templates if templates is not None else self.__default_templates()
        )
        self.__register_composers()

    @classmethod
    def current(cls) -> Smsio:
        smsio = cls.__current.get()
        if smsio is None:
            raise RuntimeError("No smsio instance is active.")
        return smsio

    @contextmanager
    def activate(self) -> Generator[Smsio]:
        token = self.__current.set(self)
        try:
            yield self
        finally:
            self.__current.reset(token)

    def __pyproject(self) -> Path | None:
        for path in [cwd := Path.cwd(), *cwd.parents]:
            candidate = path / "pyproject.toml"
            if candidate.is_file():
                return candidate
        return None

    def __config(self) -> dict[str, Any]:
        if pyproject := self.__pyproject():
            with pyproject.open("rb") as f:
                config = tomllib.load(f)
            return config.get("tool", {}).get("smsio", {})
        return {}

    def __setting(self, name: str) -> str | None:
        return os.environ.get(f"SMSIO_{name.upper()}") or self.__config().get(name)

    def __default_broker(self) -> Broker:
        broker_uri = self.__setting("broker")
        if not broker_uri:
            raise ValueError(
                "No broker URI configured. Set SMSIO_BROKER env var "
                "or add 'broker' to [tool.smsio] in pyproject.toml"
            )

        if broker_uri.startswith("pika:"):
            from .pika.broker import PikaBroker

            return PikaBroker.from_uri(broker_uri)
        if broker_uri.startswith("stub:"):
            from .stub.broker import StubBroker

            return StubBroker.from_uri(broker_uri)
        raise ValueError(f"URI scheme must be 'pika:' or 'stub:', got: {broker_uri}")

    def __default_transport(self) -> Transport:
        transport_uri = self.__setting("transport")
        if not transport_uri:
            raise ValueError(
                "No transport URI configured. Set SMSIO_TRANSPORT env var "
                "or add 'transport' to [tool.smsio] in pyproject.toml"
            )

        if transport_uri.startswith("stub:"):
            from .stub.transport import StubTransport

            return StubTransport.from_uri(transport_uri)
        raise ValueError(f"URI scheme must be 'stub:', got: {transport_uri}")

    def __default_templates(self) -> Catalog:
        templates = self.__setting("templates")
        if not templates:
            return TemplateCatalog()
        path = Path(templates)
        if not path.is_absolute() and (pyproject := self.__pyproject()):
            path = pyproject.parent / path
        return TemplateCatalog.from_path(path)

    def __register_composers(self):
        """Import the composer modules listed in pyproject.toml."""
        for module_name in self.__config().get("register", []):
            importlib.import_module(module_name)

    @property
    def broker(self) -> Broker:
        if self.__broker is None:
            self.__broker = self.__default_broker()
        return self.__broker

    @property
    def transport(self) -> Transport:
        return self.__transport

    @property
    def templates(self) -> Catalog:
        return self.__templates

    def composer(self, composer_path: str, /) -> type[Composer]:
        return resolve(composer_path)

    def composers(self) -> list[type[Composer]]:
        """Return all registered composers."""
        return list(COMPOSER_REGISTRY.values())

    def submit(self, job: DeliveryJob, /):
        """Submit a delivery job to be performed in the background."""
        self.broker.enqueue(serialize(job), queue=job.queue)
        logger.info(
            "delivery_enqueued",
            job_id=job.id,
            composer=job.composer,
            action=job.action,
            delivery=job.delivery,
            queue=job.queue,
            run_at=job.run_at.isoformat() if job.run_at else None,
        )

    def purge(self, *, queue: str):
        self.broker.purge(queue=queue)

    def receive(self, queuespec: QueueSpec, /) -> Receiver:
        return self.broker.receive(queuespec)

    def shutdown(self):
        """Shut down all components."""
        if self.__broker is not None:
            self.__broker.shutdown()
        self.__transport.shutdown()
