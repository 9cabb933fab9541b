from collections import defaultdict
from collections import deque
from threading import Condition

from smsio.broker import Broker
from smsio.queuespec import QueueSpec

from .receiver import StubReceiver


class StubBroker(Broker):
    """An in-memory broker for tests and single-process development."""

    def __init__(self):
        self.__condition = Condition()
        self.__queues = defaultdict[str, deque[bytes]](deque)
        self.__receivers = set[StubReceiver]()
        self.__shutdown = False

    @classmethod
    def from_uri(cls, uri: str, /):
        return cls()

    def enqueue(self, body: bytes, /, *, queue: str):
        with self.__condition:
            if self.__shutdown:
                raise RuntimeError("The broker has been shut down")
            self.__queues[queue].append(body)
            self.__condition.notify_all()

    def pending(self, *, queue: str) -> list[bytes]:
        """List the jobs waiting on a queue without receiving them."""
        with self.__condition:
            return list(self.__queues[queue])

    def purge(self, *, queue: str):
        # Receivers keep a reference to the deque, so clear it in place
        with self.__condition:
            self.__queues[queue].clear()

    def receive(self, queuespec: QueueSpec, /) -> StubReceiver:
        if not queuespec.queues:
            raise ValueError("Must specify at least one queue")

        with self.__condition:
            if self.__shutdown:
                raise RuntimeError("The broker has been shut down")
            receiver = StubReceiver(
                condition=self.__condition,
                queues=[self.__queues[queue] for queue in queuespec.queues],
                capacity=queuespec.concurrency,
            )
            self.__receivers.add(receiver)
        return receiver

    def shutdown(self):
        with self.__condition:
            if self.__shutdown:
                return
            self.__shutdown = True
            receivers = set(self.__receivers)
            self.__receivers.clear()

        for receiver in receivers:
            receiver.shutdown()
