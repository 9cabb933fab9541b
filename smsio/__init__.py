from contextlib import contextmanager

from .composer import Composer as Composer
from .composer import action as action
from .delivery import DeliveryHandle as DeliveryHandle
from .message import Message as Message
from .rescue import rescue_from as rescue_from
from .smsio import Smsio as Smsio


@contextmanager
def activate():
    smsio = Smsio()
    try:
        with smsio.activate():
            yield smsio
    finally:
        smsio.shutdown()
