from collections import deque
from collections.abc import Iterator
from threading import Condition

from smsio.envelope import Envelope
from smsio.receiver import Receiver


class StubReceiver(Receiver):
    """Take jobs round-robin from in-memory queues, within a capacity."""

    def __init__(
        self,
        *,
        condition: Condition,
        queues: list[deque[bytes]],
        capacity: int,
    ):
        self.__condition = condition
        self.__queues = queues
        self.__capacity = capacity
        self.__next = 0
        self.__shutdown = False

    def __iter__(self) -> Iterator[Envelope]:
        while True:
            with self.__condition:
                while not self.__shutdown and (
                    self.__capacity <= 0 or not any(self.__queues)
                ):
                    self.__condition.wait()
                if self.__shutdown:
                    return
                self.__capacity -= 1
                body = self.__pop()
            yield Envelope(body=body)

    def __pop(self) -> bytes:
        for offset in range(len(self.__queues)):
            index = (self.__next + offset) % len(self.__queues)
            if self.__queues[index]:
                self.__next = index + 1
                return self.__queues[index].popleft()
        raise LookupError("No queue has a pending job")

    def pause(self, envelope: Envelope, /):
        with self.__condition:
            self.__capacity += 1
            self.__condition.notify_all()

    def unpause(self, envelope: Envelope, /):
        # Doesn't wait for capacity, the envelope is already in hand
        with self.__condition:
            self.__capacity -= 1

    def finish(self, envelope: Envelope, /):
        with self.__condition:
            self.__capacity += 1
            self.__condition.notify_all()

    def shutdown(self):
        with self.__condition:
            self.__shutdown = True
            self.__condition.notify_all()
