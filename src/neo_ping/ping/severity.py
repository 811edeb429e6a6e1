"""Map ping outcomes to perceptual severity tiers and OKLCH colours.

    0-50 ms    -> green  (good)
    50-150 ms  -> yellow towards red (okay)
    150 ms+    -> red deepening, clamped at 300 ms (poor)
    timeout    -> dark red
    error      -> grey
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .events import Error, PingEvent, Reply, Timeout

GOOD_MAX_MS = 50.0
OKAY_MAX_MS = 150.0
CLAMP_MAX_MS = 300.0


class SeverityTier(str, Enum):
    GOOD = "good"
    OKAY = "okay"
    POOR = "poor"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Oklch:
    """A colour in the OKLCH space (lightness 0-1, chroma, hue in degrees)."""

    lightness: float
    chroma: float
    hue: float

    def css(self) -> str:
        return f"oklch({self.lightness:g} {self.chroma:g} {self.hue:g})"


GOOD_COLOR = Oklch(0.75, 0.2, 149.0)
TIMEOUT_COLOR = Oklch(0.45, 0.25, 25.0)
ERROR_COLOR = Oklch(0.55, 0.02, 260.0)

_OKAY_LIGHTNESS = 0.65
_OKAY_HUE_START = 95.0
_OKAY_HUE_END = 30.0
_POOR_HUE_END = 15.0
_POOR_LIGHTNESS_END = 0.5
_CHROMA = 0.25


def _clamp(latency_ms: float) -> float:
    if math.isnan(latency_ms) or latency_ms < 0:
        raise ValueError(f"latency must be a non-negative number, got {latency_ms!r}")
    return min(latency_ms, CLAMP_MAX_MS)


def tier_for_latency(latency_ms: float) -> SeverityTier:
    clamped = _clamp(latency_ms)
    if clamped <= GOOD_MAX_MS:
        return SeverityTier.GOOD
    if clamped <= OKAY_MAX_MS:
        return SeverityTier.OKAY
    return SeverityTier.POOR


def classify(latency_ms: float) -> Oklch:
    """Return the indicator colour for a reply latency.

    The good tier is a fixed colour. The okay tier moves the hue from
    yellow to red, and the poor tier keeps reducing hue while lowering
    lightness. Latencies above 300 ms render the same as 300 ms.
    """
    clamped = _clamp(latency_ms)
    if clamped <= GOOD_MAX_MS:
        return GOOD_COLOR
    if clamped <= OKAY_MAX_MS:
        t = (clamped - GOOD_MAX_MS) / (OKAY_MAX_MS - GOOD_MAX_MS)
        hue = _OKAY_HUE_START - t * (_OKAY_HUE_START - _OKAY_HUE_END)
        return Oklch(_OKAY_LIGHTNESS, _CHROMA, hue)
    t = (clamped - OKAY_MAX_MS) / (CLAMP_MAX_MS - OKAY_MAX_MS)
    hue = _OKAY_HUE_END - t * (_OKAY_HUE_END - _POOR_HUE_END)
    lightness = _OKAY_LIGHTNESS - t * (_OKAY_LIGHTNESS - _POOR_LIGHTNESS_END)
    return Oklch(lightness, _CHROMA, hue)


def tier_for_event(event: PingEvent) -> SeverityTier:
    outcome = event.outcome
    if isinstance(outcome, Reply):
        return tier_for_latency(outcome.latency_ms)
    if isinstance(outcome, Timeout):
        return SeverityTier.TIMEOUT
    return SeverityTier.ERROR


def color_for_event(event: PingEvent) -> Oklch:
    outcome = event.outcome
    if isinstance(outcome, Reply):
        return classify(outcome.latency_ms)
    if isinstance(outcome, Timeout):
        return TIMEOUT_COLOR
    if isinstance(outcome, Error):
        return ERROR_COLOR
    raise TypeError(f"Unsupported outcome: {outcome!r}")


__all__ = [
    "ERROR_COLOR",
    "GOOD_COLOR",
    "TIMEOUT_COLOR",
    "Oklch",
    "SeverityTier",
    "classify",
    "color_for_event",
    "tier_for_event",
    "tier_for_latency",
]
