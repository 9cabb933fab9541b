from dataclasses import dataclass


@dataclass(eq=False, frozen=True)
class Envelope:
    """A serialized delivery job as carried by a broker."""

    body: bytes
