from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Principal:
    """An authenticated caller as seen by authorization.

    Identity is owned by the authentication service; only the role name is
    consulted here.
    """

    subject: str
    role: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Principal":
        return cls(subject=str(payload["sub"]), role=str(payload["role"]))
