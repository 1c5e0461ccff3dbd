"""
SIGNATURE REFINER - Image Panel Widgets

Image display for the original upload and the interactive crop canvas.
"""

from typing import Optional, Tuple

from PySide6.QtWidgets import QWidget, QSizePolicy
from PySide6.QtCore import Qt, Signal, QPointF, QRectF
from PySide6.QtGui import QPixmap, QImage, QPainter, QPen, QColor, QBrush, QLinearGradient

from crop_geometry import CropController, CursorHint, overlay_regions
from processing import PixelBuffer
from ui_constants import Colors, Dimensions


_QT_CURSORS = {
    CursorHint.DEFAULT: Qt.ArrowCursor,
    CursorHint.CROSSHAIR: Qt.CrossCursor,
    CursorHint.GRAB: Qt.OpenHandCursor,
    CursorHint.NW_RESIZE: Qt.SizeFDiagCursor,
    CursorHint.SE_RESIZE: Qt.SizeFDiagCursor,
    CursorHint.NE_RESIZE: Qt.SizeBDiagCursor,
    CursorHint.SW_RESIZE: Qt.SizeBDiagCursor,
}


def buffer_to_qimage(buffer: PixelBuffer) -> QImage:
    """Convert an RGBA pixel buffer to a QImage that owns its memory."""
    w, h = buffer.width, buffer.height
    return QImage(buffer.to_bytes(), w, h, w * 4, QImage.Format_RGBA8888).copy()


def fit_rect(content_w: int, content_h: int, area_w: int, area_h: int) -> Tuple[int, int, int, int]:
    """Centered, aspect-preserving (x, y, w, h) of content scaled into an area."""
    scale = min(area_w / content_w, area_h / content_h)
    w = max(1, int(content_w * scale))
    h = max(1, int(content_h * scale))
    return ((area_w - w) // 2, (area_h - h) // 2, w, h)


def draw_checkerboard(painter: QPainter, x: int, y: int, w: int, h: int):
    """Fill a rectangle with the usual transparency checkerboard."""
    size = Dimensions.CHECKER_SIZE
    light = QColor(Colors.CHECKER_LIGHT)
    dark = QColor(Colors.CHECKER_DARK)
    painter.fillRect(x, y, w, h, light)
    for row, cy in enumerate(range(y, y + h, size)):
        for col, cx in enumerate(range(x, x + w, size)):
            if (row + col) % 2:
                painter.fillRect(cx, cy, min(size, x + w - cx), min(size, y + h - cy), dark)


class ImagePanel(QWidget):
    """A panel that displays an image with a title."""

    def __init__(self, title: str):
        super().__init__()
        self.title = title
        self.setMinimumSize(*Dimensions.CANVAS_MIN_SIZE)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self._buffer: Optional[PixelBuffer] = None
        self._pixmap: Optional[QPixmap] = None

    def get_image(self) -> Optional[PixelBuffer]:
        """Return the currently displayed image, or None if no image."""
        return self._buffer

    def set_image(self, buffer: Optional[PixelBuffer]):
        """Set the image to display."""
        self._buffer = buffer
        self._pixmap = QPixmap.fromImage(buffer_to_qimage(buffer)) if buffer is not None else None
        self.update()

    def _get_image_rect(self):
        """Calculate where the image should be drawn (centered, aspect-ratio preserved)."""
        if self._pixmap is None:
            return None
        return fit_rect(self._pixmap.width(), self._pixmap.height(), self.width(), self.height())

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(Colors.BACKGROUND_DARK))

        if self._pixmap is None:
            painter.setPen(QColor(Colors.TEXT_MUTED))
            painter.drawText(self.rect(), Qt.AlignCenter, self.title)
            return

        ix, iy, iw, ih = self._get_image_rect()
        draw_checkerboard(painter, ix, iy, iw, ih)
        scaled = self._pixmap.scaled(iw, ih, Qt.KeepAspectRatio, Qt.SmoothTransformation)
        painter.drawPixmap(ix, iy, scaled)
        self._draw_overlay(painter, ix, iy, iw, ih)

    def _draw_overlay(self, painter: QPainter, ix: int, iy: int, iw: int, ih: int):
        """Hook for subclasses drawing on top of the image."""


class CropCanvas(ImagePanel):
    """Shows the refined image and drives a CropController from the mouse.

    Crop coordinates are canvas-local display units: (0, 0) is the top-left
    of the drawn image, not of the widget.
    """

    cropChanged = Signal(object)  # CropRect
    dragFinished = Signal()

    def __init__(self, title: str, controller: CropController = None):
        super().__init__(title)
        self.setMouseTracking(True)
        self._controller = controller or CropController()
        self._image_rect = None

    @property
    def controller(self) -> CropController:
        return self._controller

    def set_image(self, buffer: Optional[PixelBuffer]):
        super().set_image(buffer)
        self._sync_canvas_size()

    def display_scale(self) -> Tuple[float, float]:
        """Buffer pixels per display unit, (scale_x, scale_y)."""
        if self._buffer is None or self._image_rect is None:
            return (1.0, 1.0)
        _, _, iw, ih = self._image_rect
        return (self._buffer.width / iw, self._buffer.height / ih)

    def _sync_canvas_size(self):
        """Keep the controller's canvas equal to the drawn image size."""
        self._image_rect = self._get_image_rect()
        if self._image_rect is None:
            return
        _, _, iw, ih = self._image_rect
        if (iw, ih) != (self._controller.canvas_width, self._controller.canvas_height):
            self._controller.resize_canvas(iw, ih)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._sync_canvas_size()

    def _to_canvas(self, pos) -> Tuple[float, float]:
        ix, iy, _, _ = self._image_rect or (0, 0, 0, 0)
        return (pos.x() - ix, pos.y() - iy)

    def _draw_overlay(self, painter: QPainter, ix: int, iy: int, iw: int, ih: int):
        controller = self._controller
        if not controller.cropping or controller.rect.is_empty:
            return

        rect = controller.rect
        painter.setRenderHint(QPainter.Antialiasing)
        painter.translate(ix, iy)

        # Dim the area outside the crop box
        gradient = QLinearGradient(0, 0, 0, ih)
        gradient.setColorAt(0, QColor(*Colors.CROP_SHADE_TOP))
        gradient.setColorAt(1, QColor(*Colors.CROP_SHADE_BOTTOM))
        shade = QBrush(gradient)
        for bx, by, bw, bh in overlay_regions(rect, iw, ih):
            if bw > 0 and bh > 0:
                painter.fillRect(QRectF(bx, by, bw, bh), shade)

        # Dashed crop outline
        pen = QPen(QColor(Colors.ACCENT_PRIMARY), Dimensions.CROP_BORDER_WIDTH)
        pen.setDashPattern(Dimensions.CROP_DASH_PATTERN)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(QRectF(rect.x, rect.y, rect.width, rect.height))

        # Circular corner handles
        radius = controller.handle_size / 2
        painter.setPen(QPen(QColor(Colors.CROP_HANDLE_BORDER), 2))
        painter.setBrush(QColor(Colors.ACCENT_PRIMARY))
        for hx, hy in rect.corners():
            painter.drawEllipse(QPointF(hx, hy), radius, radius)

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton or self._image_rect is None:
            return
        if self._controller.pointer_down(self._to_canvas(event.position())):
            self.cropChanged.emit(self._controller.rect)
            self.update()

    def mouseMoveEvent(self, event):
        if self._image_rect is None:
            return
        changed = self._controller.pointer_move(self._to_canvas(event.position()))
        self.setCursor(_QT_CURSORS[self._controller.cursor])
        if changed:
            self.cropChanged.emit(self._controller.rect)
            self.update()

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._end_drag()

    def leaveEvent(self, event):
        self._end_drag()
        super().leaveEvent(event)

    def _end_drag(self):
        if not self._controller.is_dragging:
            return
        self._controller.end_drag()
        self.setCursor(_QT_CURSORS[self._controller.cursor])
        self.dragFinished.emit()
        self.update()
