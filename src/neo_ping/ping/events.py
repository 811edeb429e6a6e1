"""Event types produced by the ping monitor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class Reply:
    """A reply was received after ``latency_ms`` milliseconds."""

    latency_ms: float

    kind = "reply"


@dataclass(frozen=True, slots=True)
class Timeout:
    """The target did not answer within the ping tool's own timeout."""

    kind = "timeout"


@dataclass(frozen=True, slots=True)
class Error:
    """Error output from the ping tool, or a failure of the tool itself."""

    message: str

    kind = "error"


Outcome = Union[Reply, Timeout, Error]


@dataclass(frozen=True, slots=True)
class PingEvent:
    """A classified line of ping output with its delivery sequence number.

    ``sequence`` is 0 for the error reporting that the ping tool could not
    be launched at all. The "Ping exited with code N" error reuses the
    latest sequence, so it is also 0 when ping exits before producing any
    event; tell the two apart by message, not by sequence.
    """

    sequence: int
    outcome: Outcome

    @property
    def kind(self) -> str:
        return self.outcome.kind

    @property
    def latency_ms(self) -> float | None:
        if isinstance(self.outcome, Reply):
            return self.outcome.latency_ms
        return None

    @property
    def message(self) -> str | None:
        if isinstance(self.outcome, Error):
            return self.outcome.message
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sequence": self.sequence, "kind": self.kind}
        if isinstance(self.outcome, Reply):
            data["latency_ms"] = self.outcome.latency_ms
        elif isinstance(self.outcome, Error):
            data["message"] = self.outcome.message
        return data


__all__ = ["Error", "Outcome", "PingEvent", "Reply", "Timeout"]
