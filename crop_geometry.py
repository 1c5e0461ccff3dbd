"""
SIGNATURE REFINER - Crop Geometry

Pointer-driven crop rectangle: draw, move and corner-resize gestures,
normalization of inverted rectangles, clamping to the canvas, and the
mapping of the on-screen rectangle onto buffer pixels.

Nothing here paints. Renderers read ``CropController.rect``, ``corners()``
and ``overlay_regions()`` and draw whatever they like.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from processing import PixelBuffer, extract_region

# Diameter of a corner handle in display units; hit zone is +/- HANDLE_SIZE / 2
HANDLE_SIZE = 12

Point = Tuple[float, float]


class InvalidCropError(ValueError):
    """Raised when applying a crop whose rectangle has no area."""

    def __init__(self, message: str = "Please select a valid crop area first."):
        super().__init__(message)


class DragMode(Enum):
    """What a pointer drag is doing to the crop rectangle."""
    MOVE = 'move'
    DRAW = 'draw'
    NW = 'nw'
    NE = 'ne'
    SW = 'sw'
    SE = 'se'


# Corner modes in hit-test priority order
CORNER_MODES = (DragMode.NW, DragMode.NE, DragMode.SW, DragMode.SE)


class CursorHint(Enum):
    """Pointer feedback; values are CSS cursor names."""
    DEFAULT = 'default'
    CROSSHAIR = 'crosshair'
    GRAB = 'grab'
    NW_RESIZE = 'nw-resize'
    NE_RESIZE = 'ne-resize'
    SW_RESIZE = 'sw-resize'
    SE_RESIZE = 'se-resize'


_RESIZE_CURSORS = {
    DragMode.NW: CursorHint.NW_RESIZE,
    DragMode.NE: CursorHint.NE_RESIZE,
    DragMode.SW: CursorHint.SW_RESIZE,
    DragMode.SE: CursorHint.SE_RESIZE,
}


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in display coordinates.

    Width/height may be negative only transiently, mid-gesture, before
    ``normalized()`` is applied.
    """
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def zero(cls) -> 'CropRect':
        return cls(0.0, 0.0, 0.0, 0.0)

    @classmethod
    def full(cls, canvas_width: float, canvas_height: float) -> 'CropRect':
        return cls(0.0, 0.0, float(canvas_width), float(canvas_height))

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def normalized(self) -> 'CropRect':
        return normalize_rect(self)

    def clamped(self, canvas_width: float, canvas_height: float) -> 'CropRect':
        return clamp_rect(self, canvas_width, canvas_height)

    def contains_strict(self, point: Point) -> bool:
        """True when ``point`` is strictly inside (edges excluded)."""
        px, py = point
        return self.x < px < self.right and self.y < py < self.bottom

    def corners(self) -> List[Point]:
        """Handle centers in NW, NE, SW, SE order."""
        return [
            (self.x, self.y),
            (self.right, self.y),
            (self.x, self.bottom),
            (self.right, self.bottom),
        ]

    def scaled(self, scale_x: float, scale_y: float) -> 'CropRect':
        return CropRect(self.x * scale_x, self.y * scale_y,
                        self.width * scale_x, self.height * scale_y)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class DragSession:
    """A single pointer-down .. pointer-up gesture. Mode is fixed for its lifetime."""
    mode: DragMode
    start_point: Point = (0.0, 0.0)
    offset: Point = (0.0, 0.0)


def is_inside_handle(point: Point, handle: Point, handle_size: float = HANDLE_SIZE) -> bool:
    """Square hit zone centered on a corner, boundaries inclusive."""
    half = handle_size / 2
    px, py = point
    hx, hy = handle
    return hx - half <= px <= hx + half and hy - half <= py <= hy + half


def hit_test(point: Point, rect: CropRect, handle_size: float = HANDLE_SIZE) -> Optional[DragMode]:
    """Classify a point against the rectangle.

    Returns a corner mode, ``DragMode.MOVE`` for the strict interior, or
    None when the point is outside (a new rectangle would be drawn).
    """
    for mode, corner in zip(CORNER_MODES, rect.corners()):
        if is_inside_handle(point, corner, handle_size):
            return mode
    if rect.contains_strict(point):
        return DragMode.MOVE
    return None


def cursor_hint(point: Point, rect: CropRect, handle_size: float = HANDLE_SIZE) -> CursorHint:
    """Cursor to show while hovering in crop mode without dragging."""
    mode = hit_test(point, rect, handle_size)
    if mode is None:
        return CursorHint.CROSSHAIR
    if mode is DragMode.MOVE:
        return CursorHint.GRAB
    return _RESIZE_CURSORS[mode]


def begin_drag(point: Point, rect: CropRect,
               handle_size: float = HANDLE_SIZE) -> Tuple[DragSession, CropRect]:
    """Start a gesture at ``point``.

    Returns the session and the rectangle to use from now on. Only a draw
    gesture changes the rectangle: it collapses to a zero-size rect at
    ``point``.
    """
    px, py = float(point[0]), float(point[1])
    mode = hit_test((px, py), rect, handle_size)

    if mode is None:
        session = DragSession(DragMode.DRAW, start_point=(px, py))
        return session, CropRect(px, py, 0.0, 0.0)
    if mode is DragMode.MOVE:
        return DragSession(DragMode.MOVE, offset=(px - rect.x, py - rect.y)), rect
    return DragSession(mode), rect


def _raw_update(point: Point, rect: CropRect, session: DragSession) -> CropRect:
    px, py = float(point[0]), float(point[1])
    mode = session.mode

    if mode is DragMode.MOVE:
        ox, oy = session.offset
        return replace(rect, x=px - ox, y=py - oy)
    if mode is DragMode.DRAW:
        sx, sy = session.start_point
        return CropRect(sx, sy, px - sx, py - sy)
    if mode is DragMode.NW:
        return CropRect(px, py,
                        rect.width + (rect.x - px),
                        rect.height + (rect.y - py))
    if mode is DragMode.NE:
        return CropRect(rect.x, py,
                        px - rect.x,
                        rect.height + (rect.y - py))
    if mode is DragMode.SW:
        return CropRect(px, rect.y,
                        rect.width + (rect.x - px),
                        py - rect.y)
    if mode is DragMode.SE:
        return CropRect(rect.x, rect.y, px - rect.x, py - rect.y)
    raise ValueError(f"Unknown drag mode: {mode!r}")


def update_drag(point: Point, rect: CropRect, session: DragSession,
                canvas_width: float, canvas_height: float) -> CropRect:
    """Apply a pointer move to ``rect``; the result is normalized and on-canvas."""
    moved = _raw_update(point, rect, session)
    return clamp_rect(normalize_rect(moved), canvas_width, canvas_height)


def normalize_rect(rect: CropRect) -> CropRect:
    """Flip negative extents so width/height are >= 0 over the same area."""
    x, y, width, height = rect.as_tuple()
    if width < 0:
        x += width
        width = abs(width)
    if height < 0:
        y += height
        height = abs(height)
    return CropRect(x, y, width, height)


def clamp_rect(rect: CropRect, canvas_width: float, canvas_height: float) -> CropRect:
    """Keep a normalized rectangle fully inside the canvas.

    The origin is pulled back first; if the rect is still too large the
    far edge is trimmed to the canvas.
    """
    x = max(0.0, min(rect.x, canvas_width - rect.width))
    y = max(0.0, min(rect.y, canvas_height - rect.height))
    width = rect.width
    height = rect.height
    if x + width > canvas_width:
        width = canvas_width - x
    if y + height > canvas_height:
        height = canvas_height - y
    return CropRect(x, y, width, height)


def overlay_regions(rect: CropRect, canvas_width: float,
                    canvas_height: float) -> List[Tuple[float, float, float, float]]:
    """Dimmed bands around the crop as (x, y, w, h): top, bottom, left, right."""
    return [
        (0.0, 0.0, canvas_width, rect.y),
        (0.0, rect.bottom, canvas_width, canvas_height - rect.bottom),
        (0.0, rect.y, rect.x, rect.height),
        (rect.right, rect.y, canvas_width - rect.right, rect.height),
    ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def apply_crop(rect: CropRect, source: PixelBuffer, scale_x: float, scale_y: float) -> PixelBuffer:
    """Extract the pixels under ``rect`` from ``source``.

    Args:
        rect: Settled crop rectangle in display units
        source: Buffer in native pixel units
        scale_x: Buffer pixels per display unit, horizontally
        scale_y: Buffer pixels per display unit, vertically
    """
    if rect.width == 0 or rect.height == 0:
        raise InvalidCropError()
    rect = normalize_rect(rect)

    x = _round_half_up(rect.x * scale_x)
    y = _round_half_up(rect.y * scale_y)
    width = max(1, _round_half_up(rect.width * scale_x))
    height = max(1, _round_half_up(rect.height * scale_y))
    return extract_region(source, x, y, width, height)


class CropController:
    """Owns the crop rectangle and the in-flight drag for one canvas.

    States are idle (no session) and dragging (session set). All pointer
    events are ignored unless crop mode is on.
    """

    def __init__(self, canvas_width: float = 0.0, canvas_height: float = 0.0,
                 handle_size: float = HANDLE_SIZE):
        self.canvas_width = float(canvas_width)
        self.canvas_height = float(canvas_height)
        self.handle_size = handle_size
        self.rect = CropRect.zero()
        self.session: Optional[DragSession] = None
        self.cropping = False
        self.cursor = CursorHint.DEFAULT

    @property
    def is_dragging(self) -> bool:
        return self.session is not None

    @property
    def state(self) -> str:
        return 'dragging' if self.session is not None else 'idle'

    def set_canvas_size(self, width: float, height: float):
        """New image loaded: forget any crop in progress."""
        self.canvas_width = float(width)
        self.canvas_height = float(height)
        self.rect = CropRect.zero()
        self.session = None
        self.cropping = False
        self.cursor = CursorHint.DEFAULT

    def resize_canvas(self, width: float, height: float):
        """Display size changed; keep the crop covering the same image area."""
        width, height = float(width), float(height)
        if self.canvas_width > 0 and self.canvas_height > 0:
            sx = width / self.canvas_width
            sy = height / self.canvas_height
            self.rect = clamp_rect(self.rect.scaled(sx, sy), width, height)
        self.canvas_width = width
        self.canvas_height = height

    def enter_crop_mode(self):
        self.cropping = True
        self.session = None
        self.rect = CropRect.full(self.canvas_width, self.canvas_height)
        self.cursor = CursorHint.CROSSHAIR

    def reset(self):
        """Reset the crop to the whole canvas."""
        self.session = None
        self.rect = CropRect.full(self.canvas_width, self.canvas_height)

    def cancel(self):
        self.cropping = False
        self.session = None
        self.rect = CropRect.zero()
        self.cursor = CursorHint.DEFAULT

    def pointer_down(self, point: Point) -> bool:
        """Begin a gesture. Returns False if the event was ignored."""
        if not self.cropping:
            return False
        # A press in the margin around the image anchors on the nearest edge
        px = min(max(float(point[0]), 0.0), self.canvas_width)
        py = min(max(float(point[1]), 0.0), self.canvas_height)
        self.session, self.rect = begin_drag((px, py), self.rect, self.handle_size)
        return True

    def pointer_move(self, point: Point) -> bool:
        """Update the hover cursor, or the rectangle while dragging.

        Returns True when the rectangle changed.
        """
        if not self.cropping:
            self.cursor = CursorHint.DEFAULT
            return False
        if self.session is None:
            self.cursor = cursor_hint(point, self.rect, self.handle_size)
            return False
        new_rect = update_drag(point, self.rect, self.session,
                               self.canvas_width, self.canvas_height)
        changed = new_rect != self.rect
        self.rect = new_rect
        return changed

    def end_drag(self):
        if self.session is None:
            return
        self.session = None
        if self.cropping:
            self.cursor = CursorHint.CROSSHAIR

    # Pointer leaving the surface or a cancelled touch must not leave a stuck drag
    pointer_up = end_drag
    pointer_leave = end_drag
    pointer_cancel = end_drag

    def apply(self, source: PixelBuffer, scale_x: float, scale_y: float) -> PixelBuffer:
        """Crop ``source`` and leave crop mode.

        On InvalidCropError nothing changes so the user can try again.
        """
        cropped = apply_crop(self.rect, source, scale_x, scale_y)
        self.cancel()
        return cropped
