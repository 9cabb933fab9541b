from collections.abc import Callable
from collections.abc import Iterator
from threading import Lock
from threading import get_ident
from typing import Any
from typing import cast

from pika import BlockingConnection
from pika import ConnectionParameters
from pika import URLParameters

from smsio.envelope import Envelope
from smsio.receiver import Receiver


class PikaReceiver(Receiver):
    """Receive jobs from a single RabbitMQ queue.

    The prefetch window can't change while consuming, so a paused envelope
    is acknowledged right away to let the next job in. A worker that shuts
    down publishes its paused jobs again, but one that is killed outright
    while a job waits loses it.
    """

    def __init__(
        self,
        *,
        connection_params: ConnectionParameters | URLParameters,
        queue: str,
        prefetch: int,
    ):
        self.__connection = BlockingConnection(connection_params)
        self.__channel = self.__connection.channel()
        self.__channel.queue_declare(queue=queue, durable=True)
        self.__channel.basic_qos(prefetch_count=prefetch)
        self.__queue = queue
        self.__tags = dict[Envelope, int]()
        self.__paused = set[Envelope]()
        self.__consuming: int | None = None

    def __iter__(self) -> Iterator[Envelope]:
        self.__consuming = get_ident()
        try:
            for method, _, body in self.__channel.consume(queue=self.__queue):
                envelope = Envelope(body=body)
                self.__tags[envelope] = cast(int, method.delivery_tag)
                yield envelope
        finally:
            self.__consuming = None
            if self.__connection.is_open:
                self.__connection.close()

    def __blocking_callback(self, fn: Callable[[], Any]):
        """Queue a callback on the connection thread and wait for it."""
        if self.__consuming in (None, get_ident()):
            # Nothing is processing connection events to run it for us
            fn()
            return

        lock = Lock()
        lock.acquire()

        def callback():
            try:
                fn()
            finally:
                lock.release()

        self.__connection.add_callback_threadsafe(callback)
        with lock:
            return

    def __ack(self, envelope: Envelope):
        tag = self.__tags.pop(envelope)
        self.__blocking_callback(lambda: self.__channel.basic_ack(delivery_tag=tag))

    def pause(self, envelope: Envelope, /):
        if envelope in self.__paused:
            return
        self.__paused.add(envelope)
        self.__ack(envelope)

    def unpause(self, envelope: Envelope, /):
        pass  # Already acknowledged when paused

    def finish(self, envelope: Envelope, /):
        if envelope in self.__paused:
            self.__paused.remove(envelope)
            return
        self.__ack(envelope)

    def shutdown(self):
        if self.__consuming not in (None, get_ident()):
            # Consuming stops and closes the connection on its own thread
            self.__blocking_callback(self.__channel.cancel)
            return
        if self.__connection.is_open:
            self.__connection.close()
