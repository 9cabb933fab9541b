from abc import ABC
from abc import abstractmethod
from collections.abc import Iterable

from .envelope import Envelope


class Receiver(Iterable[Envelope], ABC):
    """Receive and report on jobs from a broker.

    Iterating the receiver yields envelopes, each of which takes one unit of
    capacity until it is finished. A job that isn't due yet is paused so its
    capacity can go to other jobs while it waits, and unpaused when it is
    ready to run.

    Paused envelopes must unpause before they finish. Envelopes must not
    unpause if they have not first been paused.
    """

    @abstractmethod
    def pause(self, envelope: Envelope, /):
        """Release the capacity of an envelope that will be processed later."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def unpause(self, envelope: Envelope, /):
        """Take back capacity for a previously paused envelope."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def finish(self, envelope: Envelope, /):
        """Finish processing an envelope, releasing its capacity for good."""
        raise NotImplementedError("Subclasses must implement this method.")
