"""Zoom/pan transform, fit-to-view and pointer gesture routing.

Screen = world * k + (x, y). Gestures that begin on a node are node drags
and never pan; gestures that begin on the background pan the view.
"""

import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Literal

from memograph.config import settings

logger = logging.getLogger(__name__)

Point = tuple[float, float]
GestureKind = Literal["pan", "node"]

# Pointer travel (screen px) below which a press/release still counts as a click
CLICK_TOLERANCE = 3.0


@dataclass(frozen=True)
class Transform:
    """Uniform scale ``k`` followed by translation ``(x, y)``."""

    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, point: Point) -> Point:
        return point[0] * self.k + self.x, point[1] * self.k + self.y

    def invert(self, point: Point) -> Point:
        return (point[0] - self.x) / self.k, (point[1] - self.y) / self.k

    def translate(self, dx: float, dy: float) -> "Transform":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def scale_about(self, k: float, anchor: Point) -> "Transform":
        """Rescale to ``k`` keeping the world point under ``anchor`` fixed."""
        world = self.invert(anchor)
        return Transform(anchor[0] - world[0] * k, anchor[1] - world[1] * k, k)


IDENTITY = Transform()


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned world-space box."""

    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center(self) -> Point:
        return (self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2

    @classmethod
    def from_circles(cls, circles: Iterable[tuple[float, float, float]]) -> "Bounds | None":
        """Box around ``(x, y, radius)`` circles; None when there are none."""
        circles = list(circles)
        if not circles:
            return None
        return cls(
            min(x - r for x, _, r in circles),
            min(y - r for _, y, r in circles),
            max(x + r for x, _, r in circles),
            max(y + r for _, y, r in circles),
        )

    @classmethod
    def from_points(cls, points: Iterable[Point], padding: float = 0.0) -> "Bounds | None":
        return cls.from_circles((x, y, padding) for x, y in points)


def ease_cubic_in_out(t: float) -> float:
    t *= 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2


@dataclass(frozen=True)
class Transition:
    """Animated move between two transforms over ``duration`` seconds."""

    start: Transform
    end: Transform
    started_at: float
    duration: float
    viewport: Point  # (width, height), to interpolate around the screen centre

    def at(self, now: float) -> Transform:
        if self.duration <= 0:
            return self.end
        t = min(max((now - self.started_at) / self.duration, 0.0), 1.0)
        if t >= 1.0:
            return self.end
        e = ease_cubic_in_out(t)
        # Scale interpolates geometrically so zooming feels uniform
        k = self.start.k * (self.end.k / self.start.k) ** e
        screen_center = (self.viewport[0] / 2, self.viewport[1] / 2)
        a = self.start.invert(screen_center)
        b = self.end.invert(screen_center)
        world = (a[0] + (b[0] - a[0]) * e, a[1] + (b[1] - a[1]) * e)
        return Transform(screen_center[0] - world[0] * k, screen_center[1] - world[1] * k, k)

    def done(self, now: float) -> bool:
        return now - self.started_at >= self.duration


@dataclass
class Gesture:
    """An in-progress pointer interaction."""

    kind: GestureKind
    start: Point
    last: Point
    node_id: str | None = None
    moved: bool = False

    @property
    def is_click(self) -> bool:
        return not self.moved


def fit_transform(
    bounds: Bounds,
    width: float,
    height: float,
    padding: float | None = None,
    zoom_min: float | None = None,
    zoom_max: float | None = None,
) -> Transform:
    """
    Transform that centres ``bounds`` in a ``width`` x ``height`` viewport.

    The box occupies ``padding`` (e.g. 90%) of the tighter dimension; the
    scale is clamped to the zoom range.
    """
    padding = settings.fit_padding if padding is None else padding
    zoom_min = settings.zoom_min if zoom_min is None else zoom_min
    zoom_max = settings.zoom_max if zoom_max is None else zoom_max

    ratio = max(bounds.width / width, bounds.height / height)
    k = padding / ratio if ratio > 0 else zoom_max
    k = min(max(k, zoom_min), zoom_max)
    cx, cy = bounds.center
    return Transform(width / 2 - k * cx, height / 2 - k * cy, k)


class ViewportController:
    """
    Owns the view transform and interprets pointer gestures.

    ``clock`` returns seconds; it drives fit-to-view transitions and can be
    replaced in tests.
    """

    def __init__(
        self,
        width: float | None = None,
        height: float | None = None,
        zoom_min: float | None = None,
        zoom_max: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.width = settings.viewport_width if width is None else width
        self.height = settings.viewport_height if height is None else height
        self.zoom_min = settings.zoom_min if zoom_min is None else zoom_min
        self.zoom_max = settings.zoom_max if zoom_max is None else zoom_max
        self.clock = clock
        self._transform = IDENTITY
        self._transition: Transition | None = None
        self.gesture: Gesture | None = None

    @property
    def center(self) -> Point:
        return self.width / 2, self.height / 2

    @property
    def transform(self) -> Transform:
        """Current transform, advancing any running transition."""
        return self.advance()

    @property
    def animating(self) -> bool:
        return self._transition is not None

    def advance(self, now: float | None = None) -> Transform:
        if self._transition is not None:
            now = self.clock() if now is None else now
            self._transform = self._transition.at(now)
            if self._transition.done(now):
                self._transition = None
        return self._transform

    def set_transform(self, transform: Transform) -> None:
        self._transition = None
        self._transform = replace(transform, k=self._clamp(transform.k))

    def _clamp(self, k: float) -> float:
        return min(max(k, self.zoom_min), self.zoom_max)

    def to_world(self, point: Point) -> Point:
        return self.transform.invert(point)

    # ==========================================================================
    # Zoom / pan
    # ==========================================================================

    def zoom(self, factor: float, anchor: Point | None = None) -> Transform:
        """Multiply the scale by ``factor`` around ``anchor`` (default: centre)."""
        current = self.advance()
        self._transition = None
        k = self._clamp(current.k * factor)
        self._transform = current.scale_about(k, anchor or self.center)
        return self._transform

    def pan(self, dx: float, dy: float) -> Transform:
        current = self.advance()
        self._transition = None
        self._transform = current.translate(dx, dy)
        return self._transform

    def resize(self, width: float, height: float) -> None:
        logger.debug(f"Viewport resized to {width}x{height}")
        self.width = width
        self.height = height

    # ==========================================================================
    # Fit to view
    # ==========================================================================

    def fit_bounds(self, bounds: Bounds | None, animate: bool = True,
                   duration: float | None = None) -> Transform:
        """Frame ``bounds``; an empty visible set leaves the view unchanged."""
        current = self.advance()
        if bounds is None:
            return current
        target = fit_transform(
            bounds, self.width, self.height, zoom_min=self.zoom_min, zoom_max=self.zoom_max
        )
        duration = settings.fit_duration if duration is None else duration
        if not animate or duration <= 0:
            self.set_transform(target)
            return target
        self._transition = Transition(
            start=current,
            end=target,
            started_at=self.clock(),
            duration=duration,
            viewport=(self.width, self.height),
        )
        return target

    # ==========================================================================
    # Pointer gestures
    # ==========================================================================

    def pointer_down(self, point: Point, node_id: str | None = None) -> Gesture:
        """Start a gesture; pressing on a node starts a drag, not a pan."""
        self.gesture = Gesture(
            kind="node" if node_id is not None else "pan",
            start=point,
            last=point,
            node_id=node_id,
        )
        if self.gesture.kind == "pan":
            self._transition = None
        return self.gesture

    def pointer_move(self, point: Point) -> Gesture | None:
        gesture = self.gesture
        if gesture is None:
            return None
        if math.dist(point, gesture.start) > CLICK_TOLERANCE:
            gesture.moved = True
        if gesture.kind == "pan" and gesture.moved:
            self.pan(point[0] - gesture.last[0], point[1] - gesture.last[1])
        gesture.last = point
        return gesture

    def pointer_up(self, point: Point) -> Gesture | None:
        """Finish the gesture and return it (``is_click`` if it never moved)."""
        gesture = self.pointer_move(point)
        self.gesture = None
        return gesture
