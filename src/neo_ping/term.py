"""Terminal helpers for colourised ping status output."""

from __future__ import annotations

import math
import os
import sys

from neo_ping.ping.events import Error, PingEvent, Reply, Timeout
from neo_ping.ping.severity import Oklch, SeverityTier, color_for_event, tier_for_event

_ANSI = {
    "reset": "\x1b[0m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "red": "\x1b[31m",
    "dark_red": "\x1b[2;31m",
    "grey": "\x1b[90m",
}

# Fallback palette when the terminal cannot show 24-bit colour.
_TIER_COLORS = {
    SeverityTier.GOOD: "green",
    SeverityTier.OKAY: "yellow",
    SeverityTier.POOR: "red",
    SeverityTier.TIMEOUT: "dark_red",
    SeverityTier.ERROR: "grey",
}


def supports_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def supports_truecolor() -> bool:
    return os.getenv("COLORTERM", "").lower() in {"truecolor", "24bit"}


def _color_wrap(text: str, code: str, enabled: bool) -> str:
    if not enabled or code not in _ANSI:
        return text
    return f"{_ANSI[code]}{text}{_ANSI['reset']}"


def color_text(text: str, *, color: str = "grey", enabled: bool = True) -> str:
    return _color_wrap(text, color, enabled)


def _srgb_gamma(channel: float) -> float:
    if channel <= 0.0031308:
        return 12.92 * channel
    return 1.055 * channel ** (1 / 2.4) - 0.055


def oklch_to_rgb(color: Oklch) -> tuple[int, int, int]:
    """Convert an OKLCH colour to 8-bit sRGB, clipping out-of-gamut values."""
    hue = math.radians(color.hue)
    a = color.chroma * math.cos(hue)
    b = color.chroma * math.sin(hue)
    lightness = color.lightness

    l_ = (lightness + 0.3963377774 * a + 0.2158037573 * b) ** 3
    m_ = (lightness - 0.1055613458 * a - 0.0638541728 * b) ** 3
    s_ = (lightness - 0.0894841775 * a - 1.2914855480 * b) ** 3

    linear = (
        4.0767416621 * l_ - 3.3077115913 * m_ + 0.2309699292 * s_,
        -1.2684380046 * l_ + 2.6097574011 * m_ - 0.3413193965 * s_,
        -0.0041960863 * l_ - 0.7034186147 * m_ + 1.7076147010 * s_,
    )
    rgb = []
    for channel in linear:
        clipped = min(1.0, max(0.0, channel))
        rgb.append(int(round(_srgb_gamma(clipped) * 255)))
    return rgb[0], rgb[1], rgb[2]


def rgb_text(text: str, rgb: tuple[int, int, int], *, enabled: bool = True) -> str:
    if not enabled:
        return text
    r, g, b = rgb
    return f"\x1b[38;2;{r};{g};{b}m{text}{_ANSI['reset']}"


def describe_event(event: PingEvent, target: str | None = None) -> str:
    """Render an event the way the ping tool would report it."""
    outcome = event.outcome
    if isinstance(outcome, Reply):
        source = f"Reply from {target}: " if target else "Reply: "
        return f"{source}seq={event.sequence} time={outcome.latency_ms:g}ms"
    if isinstance(outcome, Timeout):
        return "Request timed out."
    if isinstance(outcome, Error):
        return f"Ping error: {outcome.message}"
    return repr(outcome)


def format_event(
    event: PingEvent,
    *,
    target: str | None = None,
    color: bool = True,
    truecolor: bool = False,
) -> str:
    """Return a status line for ``event`` coloured by its severity tier."""
    tier = tier_for_event(event)
    label = f"[{tier.value.upper():<7}]"
    if color and truecolor:
        label = rgb_text(label, oklch_to_rgb(color_for_event(event)))
    else:
        label = _color_wrap(label, _TIER_COLORS[tier], color)
    return f"{label} {describe_event(event, target)}"


__all__ = [
    "color_text",
    "describe_event",
    "format_event",
    "oklch_to_rgb",
    "rgb_text",
    "supports_color",
    "supports_truecolor",
]
