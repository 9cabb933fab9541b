from threading import Lock

from smsio.id import random_id
from smsio.message import Message
from smsio.transport import DeliveryResult
from smsio.transport import Transport

# GSM-7 basic character set
GSM7_CHARS = frozenset(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞÆæßÉ !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
# Escaped characters take two septets
GSM7_EXTENDED = frozenset("^{}[]~|\\€")


def segments(text: str) -> int:
    """Count the SMS segments needed to send the text."""
    if not text:
        return 0
    if all(c in GSM7_CHARS or c in GSM7_EXTENDED for c in text):
        length = sum(2 if c in GSM7_EXTENDED else 1 for c in text)
        single, multi = 160, 153
    else:
        length = len(text)
        single, multi = 70, 67
    if length <= single:
        return 1
    return -(-length // multi)


class StubTransport(Transport):
    """Keep delivered messages in memory instead of sending them."""

    def __init__(
        self,
        *,
        perform_deliveries: bool = True,
        raise_delivery_errors: bool = True,
    ):
        super().__init__(
            perform_deliveries=perform_deliveries,
            raise_delivery_errors=raise_delivery_errors,
        )
        self.__lock = Lock()
        self.__outbox: list[Message] = []
        self.__failure: Exception | None = None

    @classmethod
    def from_uri(cls, uri: str, /):
        return cls()

    @property
    def outbox(self) -> list[Message]:
        with self.__lock:
            return list(self.__outbox)

    def fail_with(self, exception: Exception | None, /):
        """Make every following delivery raise the exception, or stop failing."""
        with self.__lock:
            self.__failure = exception

    def clear(self):
        with self.__lock:
            self.__outbox.clear()

    def deliver(self, message: Message, /) -> DeliveryResult:
        with self.__lock:
            if self.__failure is not None:
                raise self.__failure
            self.__outbox.append(message)
        return DeliveryResult(
            id=f"SM{random_id(32)}",
            status="sent",
            to=message.to,
            segments=segments(message.body),
        )
