"""Dial gauge: scale geometry, needle position, warning state and SVG rendering."""

from __future__ import annotations

import math
from dataclasses import dataclass
from xml.sax.saxutils import escape

START_ANGLE = 150
SWEEP_DEGREES = 240

_WHITE = (255, 255, 255)
_YELLOW = (255, 255, 0)
_BLACK = (0, 0, 0)


@dataclass(frozen=True)
class Tick:
    """One scale mark, drawn as a radial line at ``angle`` degrees (clockwise)."""

    index: int
    angle: float
    major: bool
    warning: bool
    inner: float
    outer: float


@dataclass(frozen=True)
class GaugeLabel:
    """A scale value printed next to a major tick, relative to the dial centre."""

    value: int
    x: int
    y: int
    rotation: float
    warning: bool

    @property
    def text(self) -> str:
        return str(self.value)


def _num(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _rgb(color: tuple[int, int, int]) -> str:
    return f"rgb({color[0]},{color[1]},{color[2]})"


class Gauge:
    """A 240-degree dial with a needle, a numeric read-out and warning bands."""

    def __init__(
        self,
        min_value: float = 0.0,
        max_value: float = 240.0,
        warning_min: float = 0.0,
        warning_max: float = 160.0,
        step: int = 20,
        value: float = 0.0,
        unit: str = "km/h",
        width: int = 500,
        height: int = 420,
    ) -> None:
        if step == 0:
            raise ValueError("gauge step must not be zero")
        self.min_value = float(min_value)
        self.max_value = float(max_value)
        self.warning_min = float(warning_min)
        self.warning_max = float(warning_max)
        self.step = step
        self.unit = unit
        self.width = width
        self.height = height
        self.value = float(value)

        self.label_step = step / 5.0
        self.total_ticks = int((self.max_value - self.min_value) / step * 5)
        if self.total_ticks <= 0:
            raise ValueError("gauge range must span at least one tick")
        self.warning_tick = (self.warning_max - self.min_value) / step * 5
        self.min_warning_tick = (self.warning_min - self.min_value) / step * 5
        self.step_angle = SWEEP_DEGREES / self.total_ticks

    @property
    def radius(self) -> int:
        return self.height // 2

    @property
    def center(self) -> tuple[int, int]:
        return int(self.width / 2.0), int(self.height * 0.7)

    def set_value(self, value: float) -> None:
        """Set the value the needle points at."""
        self.value = float(value)

    def _tick_warns(self, index: int) -> bool:
        return index >= self.warning_tick or index <= self.min_warning_tick

    def ticks(self) -> list[Tick]:
        """Return every scale mark, long marks every fifth one."""
        radius = self.radius
        return [
            Tick(
                index=i,
                angle=START_ANGLE + self.step_angle * i,
                major=i % 5 == 0,
                warning=self._tick_warns(i),
                inner=radius - (20 if i % 5 == 0 else 8),
                outer=radius - 3,
            )
            for i in range(self.total_ticks + 1)
        ]

    def labels(self) -> list[GaugeLabel]:
        """Return the values printed at the major ticks."""
        text_radius = self.radius - 49
        increment = self.label_step * 5
        number = int(self.min_value - increment)
        result = []
        for i in range(0, self.total_ticks + 1, 5):
            number = int(number + increment)
            angle = math.radians(210 - self.step_angle * i)
            dx = int(math.cos(angle) * text_radius)
            dy = int(math.sin(angle) * text_radius)
            result.append(
                GaugeLabel(
                    value=number,
                    x=dx,
                    y=-dy,
                    rotation=-120 + self.step_angle * i,
                    warning=self._tick_warns(i),
                )
            )
        return result

    def needle_angle(self) -> float:
        """Clockwise rotation of the needle, in degrees, for the current value."""
        fraction = (self.value - self.min_value) / (self.max_value - self.min_value)
        return START_ANGLE + fraction * self.total_ticks * self.step_angle

    def is_warning(self) -> bool:
        """True when the value is outside the open warning interval."""
        return not self.warning_min < self.value < self.warning_max

    def value_text(self) -> str:
        """The read-out text: the value with one decimal."""
        return f"{self.value:.1f}"

    def _outer_glow_path(self) -> str:
        radius = self.height // 2 + 25
        span = min(self.step_angle * 61, 359.99)
        start = math.radians(210)
        end = math.radians(210 - span)
        x0, y0 = radius * math.cos(start), -radius * math.sin(start)
        x1, y1 = radius * math.cos(end), -radius * math.sin(end)
        large = 1 if span > 180 else 0
        return (
            f"M 0 0 L {_num(x0)} {_num(y0)} "
            f"A {radius} {radius} 0 {large} 1 {_num(x1)} {_num(y1)} Z"
        )

    def render_svg(self) -> str:
        """Draw the whole gauge as a standalone SVG document."""
        cx, cy = self.center
        radius = self.radius
        glow_radius = self.height // 2 + 25
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" '
            f'height="{self.height}" viewBox="0 0 {self.width} {self.height}">',
            "<defs>",
            '<radialGradient id="inner" gradientUnits="userSpaceOnUse" cx="0" cy="0" r="80">',
            '<stop offset="0" stop-color="rgb(255,170,0)" stop-opacity="0.784"/>',
            '<stop offset="1" stop-color="rgb(0,0,0)" stop-opacity="0.392"/>',
            "</radialGradient>",
            f'<radialGradient id="glow" gradientUnits="userSpaceOnUse" cx="0" cy="0" '
            f'r="{glow_radius}">',
            '<stop offset="0" stop-color="rgb(0,0,0)" stop-opacity="0"/>',
            '<stop offset="0.9" stop-color="rgb(0,0,0)" stop-opacity="0"/>',
            '<stop offset="0.97" stop-color="rgb(255,170,0)" stop-opacity="0.471"/>',
            '<stop offset="1" stop-color="rgb(255,170,0)" stop-opacity="0.784"/>',
            "</radialGradient>",
            "</defs>",
            f'<rect x="0" y="0" width="{self.width}" height="{self.height}" '
            f'fill="{_rgb(_BLACK)}"/>',
            f'<g transform="translate({cx},{cy})">',
            f'<circle cx="0" cy="0" r="50" fill="{_rgb(_BLACK)}" '
            f'stroke="{_rgb(_WHITE)}" stroke-width="3"/>',
        ]
        for tick in self.ticks():
            color = _YELLOW if tick.warning else _WHITE
            parts.append(
                f'<line x1="{_num(tick.inner)}" y1="0" x2="{_num(tick.outer)}" y2="0" '
                f'stroke="{_rgb(color)}" stroke-width="5" '
                f'transform="rotate({_num(tick.angle)})"/>'
            )
        for label in self.labels():
            color = _YELLOW if label.warning else _WHITE
            parts.append(
                f'<text x="0" y="-10" text-anchor="middle" dominant-baseline="central" '
                f'font-family="Arial" font-size="15" font-weight="bold" fill="{_rgb(color)}" '
                f'transform="translate({label.x},{label.y}) rotate({_num(label.rotation)})">'
                f"{escape(label.text)}</text>"
            )
        needle_len = radius * 0.6
        parts.append(
            f'<polygon points="0,0 {_num(needle_len)},-1.1 {_num(needle_len)},1.1 0,15" '
            f'fill="{_rgb(_WHITE)}" transform="rotate({_num(self.needle_angle())})"/>'
        )
        parts.append('<circle cx="0" cy="0" r="80" fill="url(#inner)"/>')
        parts.append(f'<circle cx="0" cy="0" r="60" fill="{_rgb(_BLACK)}"/>')
        text_color = _rgb(_YELLOW if self.is_warning() else _WHITE)
        parts.append(
            f'<text id="value" fill="{text_color}" x="0" y="-25" text-anchor="middle" '
            f'dominant-baseline="central" font-family="Arial" font-size="18" '
            f'font-weight="bold">{escape(self.value_text())}</text>'
        )
        parts.append(
            f'<text id="unit" fill="{text_color}" x="0" y="20" text-anchor="middle" '
            f'dominant-baseline="central" font-family="Arial" font-size="13">'
            f"{escape(self.unit)}</text>"
        )
        parts.append(f'<path d="{self._outer_glow_path()}" fill="url(#glow)"/>')
        parts.append("</g>")
        parts.append("</svg>")
        return "\n".join(parts)