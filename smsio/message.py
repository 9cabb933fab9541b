from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True, kw_only=True)
class Message:
    """A fully composed outbound SMS, ready to hand to a transport."""

    to: str
    from_: str
    body: str
    callback: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "from": self.from_,
            "body": self.body,
            "callback": self.callback,
            "options": dict(self.options),
        }
