from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass

import structlog

from .message import Message

logger = structlog.get_logger()


class TransportFailure(Exception):
    """The transport was unable to deliver a message."""


@dataclass(frozen=True, kw_only=True)
class DeliveryResult:
    """What the transport reports back after handing off a message."""

    id: str
    status: str
    to: str
    segments: int = 1


class Transport(ABC):
    """A transport sends composed messages over the network.

    ``send`` honors the delivery policy of the transport: when
    ``perform_deliveries`` is off nothing is sent, and when
    ``raise_delivery_errors`` is off failures are logged instead of raised.
    ``send_unchecked`` bypasses both.
    """

    def __init__(
        self,
        *,
        perform_deliveries: bool = True,
        raise_delivery_errors: bool = True,
    ):
        self.perform_deliveries = perform_deliveries
        self.raise_delivery_errors = raise_delivery_errors

    @classmethod
    @abstractmethod
    def from_uri(cls, uri: str, /):
        """Create a transport instance from a URI."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def deliver(self, message: Message, /) -> DeliveryResult:
        """Hand the message to the underlying service."""
        raise NotImplementedError("Subclasses must implement this method.")

    def shutdown(self):
        """Release any resources held by the transport."""

    def send(self, message: Message, /) -> DeliveryResult | None:
        if not self.perform_deliveries:
            logger.info("sms_delivery_skipped", to=message.to)
            return None
        try:
            return self.send_unchecked(message)
        except TransportFailure as failure:
            if self.raise_delivery_errors:
                raise
            logger.warning("sms_delivery_failed", to=message.to, error=str(failure))
            return None

    def send_unchecked(self, message: Message, /) -> DeliveryResult:
        logger.debug("sms_delivering", **message.to_dict())
        try:
            result = self.deliver(message)
        except TransportFailure:
            raise
        except Exception as exception:
            raise TransportFailure(
                f"Delivery to {message.to} failed: {exception}"
            ) from exception
        logger.info("sms_delivered", to=message.to, id=result.id, status=result.status)
        return result
