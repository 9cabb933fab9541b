from abc import ABC
from abc import abstractmethod

from .queuespec import QueueSpec
from .receiver import Receiver


class Broker(ABC):
    """A broker carries serialized delivery jobs between processes.

    Jobs sent through a broker may be delivered more than once in some
    conditions in order to ensure at-least-once delivery.
    """

    @classmethod
    @abstractmethod
    def from_uri(cls, uri: str, /):
        """Create a broker instance from a URI."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def enqueue(self, body: bytes, /, *, queue: str):
        """Enqueue a serialized job."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def purge(self, *, queue: str):
        """Purge all pending jobs from the queue."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def receive(self, queuespec: QueueSpec, /) -> Receiver:
        """Receive jobs from the queues in the queuespec."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def shutdown(self):
        """Signal the final shutdown of the broker."""
        raise NotImplementedError("Subclasses must implement this method.")
