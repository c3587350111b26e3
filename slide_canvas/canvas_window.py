"""PyQt6 canvas that paints the slide and turns pointer input into gestures."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from PyQt6.QtCore import QEvent, QPointF, QRectF, Qt, QUrl
from PyQt6.QtGui import QColor, QDesktopServices, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QWidget

from slide_canvas.bus_messages import SlideUpdated
from slide_canvas.event_bus import EventBus
from slide_canvas.geometry import ContainerBounds, PERCENT_SCALE, rect_contains
from slide_canvas.interaction_controller import InteractionController
from slide_canvas.slide_model import Image, Layer, Overlay
from slide_canvas.slide_store import SlideStateStore

_LOGGER = logging.getLogger("SlideEditor.Canvas")

# Size of the blank placeholder used when a slide carries no background image.
DEFAULT_CANVAS_SIZE = (1365, 1024)
RESIZE_HANDLE_PX = 10.0
CLICK_SLOP_PX = 3.0

HitResult = Tuple[int, int, bool]


class SlideCanvasWindow(QWidget):
    """Renders the background, layers by level, and the overlay rectangles."""

    def __init__(
        self,
        store: SlideStateStore,
        bus: EventBus,
        *,
        image_root: Path,
        edit_mode: bool = True,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._image_root = image_root
        self._pixmaps: Dict[str, QPixmap] = {}
        self._press_hit: Optional[HitResult] = None
        self._press_pos: Optional[QPointF] = None
        self._controller = InteractionController(
            store=store,
            container_bounds_fn=self.container_bounds,
            acquire_pointer_fn=self.grabMouse,
            release_pointer_fn=self.releaseMouse,
            publish_fn=bus.publish,
            navigate_fn=self._open_target,
            edit_mode=edit_mode,
            logger=_LOGGER,
        )
        self._subscription = bus.subscribe(SlideUpdated, lambda _message: self.update())
        self.setWindowTitle("Slide editor")
        self.setMinimumSize(480, 360)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)

    @property
    def controller(self) -> InteractionController:
        return self._controller

    def set_edit_mode(self, enabled: bool) -> None:
        self._controller.set_edit_mode(enabled)
        self.unsetCursor()
        self.update()

    # Geometry -------------------------------------------------------------

    def canvas_rect(self) -> QRectF:
        """Largest rect with the slide's aspect ratio centred in the widget."""
        image = self._store.slide.image
        ratio = image.aspect_ratio if image is not None else None
        if ratio is None:
            ratio = DEFAULT_CANVAS_SIZE[0] / DEFAULT_CANVAS_SIZE[1]
        width = float(self.width())
        height = float(self.height())
        if width <= 0 or height <= 0:
            return QRectF(0.0, 0.0, 0.0, 0.0)
        if width / height > ratio:
            fitted_w, fitted_h = height * ratio, height
        else:
            fitted_w, fitted_h = width, width / ratio
        return QRectF((width - fitted_w) / 2.0, (height - fitted_h) / 2.0, fitted_w, fitted_h)

    def container_bounds(self) -> ContainerBounds:
        rect = self.canvas_rect()
        return ContainerBounds(width=rect.width(), height=rect.height())

    def overlay_rect(self, overlay: Overlay) -> QRectF:
        canvas = self.canvas_rect()
        scale_x = canvas.width() / PERCENT_SCALE
        scale_y = canvas.height() / PERCENT_SCALE
        return QRectF(
            canvas.left() + overlay.left * scale_x,
            canvas.top() + overlay.top * scale_y,
            overlay.width * scale_x,
            overlay.height * scale_y,
        )

    def hit_test(self, pos: QPointF) -> Optional[HitResult]:
        """Return (layer, overlay, on_resize_handle) for the topmost overlay under ``pos``."""
        canvas = self.canvas_rect()
        if canvas.width() <= 0 or canvas.height() <= 0:
            return None
        x_pct = (pos.x() - canvas.left()) / canvas.width() * PERCENT_SCALE
        y_pct = (pos.y() - canvas.top()) / canvas.height() * PERCENT_SCALE
        for layer_index, layer in reversed(self._paint_order()):
            for overlay_index in range(len(layer.overlays) - 1, -1, -1):
                overlay = layer.overlays[overlay_index]
                if not rect_contains(overlay.rect, x_pct, y_pct):
                    continue
                rect = self.overlay_rect(overlay)
                on_handle = (
                    self._controller.edit_mode
                    and pos.x() >= rect.right() - RESIZE_HANDLE_PX
                    and pos.y() >= rect.bottom() - RESIZE_HANDLE_PX
                )
                return layer_index, overlay_index, on_handle
        return None

    def _paint_order(self) -> list[tuple[int, Layer]]:
        layers = [(index, layer) for index, layer in enumerate(self._store.slide.layers) if layer.display]
        return sorted(layers, key=lambda item: item[1].level)

    # Painting -------------------------------------------------------------

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor(32, 32, 32))
            canvas = self.canvas_rect()
            painter.fillRect(canvas, QColor(255, 255, 255))
            slide = self._store.slide
            if slide.image is not None:
                self._draw_image(painter, slide.image, canvas)
            selection = self._store.selection
            for layer_index, layer in self._paint_order():
                if layer.image is not None:
                    self._draw_image(painter, layer.image, canvas)
                for overlay_index, overlay in enumerate(layer.overlays):
                    self._draw_overlay(
                        painter,
                        overlay,
                        layer_active=selection.layer_index == layer_index,
                        active=selection.overlay_ref == (layer_index, overlay_index),
                    )
        finally:
            painter.end()

    def _draw_image(self, painter: QPainter, image: Image, target: QRectF) -> None:
        pixmap = self._pixmap_for(image.src)
        if pixmap is None:
            return
        painter.drawPixmap(target, pixmap, QRectF(pixmap.rect()))

    def _draw_overlay(self, painter: QPainter, overlay: Overlay, *, layer_active: bool, active: bool) -> None:
        if not self._controller.edit_mode:
            return
        rect = self.overlay_rect(overlay)
        if layer_active:
            fill = QColor(255, 200, 0, 90) if overlay.type == "toggle" else QColor(0, 140, 255, 70)
            painter.fillRect(rect, fill)
        pen = QPen(QColor(220, 30, 30) if active else QColor(0, 0, 0))
        pen.setWidth(2 if active else 1)
        painter.setPen(pen)
        painter.drawRect(rect)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, overlay.label or "overlay")
        handle = QRectF(rect.right() - RESIZE_HANDLE_PX, rect.bottom() - RESIZE_HANDLE_PX, RESIZE_HANDLE_PX, RESIZE_HANDLE_PX)
        painter.fillRect(handle, QColor(0, 0, 0))

    def _pixmap_for(self, src: str) -> Optional[QPixmap]:
        if src in self._pixmaps:
            pixmap = self._pixmaps[src]
        else:
            path = self._image_root / src.lstrip("/")
            pixmap = QPixmap(str(path))
            if pixmap.isNull():
                _LOGGER.warning("Image %s could not be loaded from %s", src, path)
            self._pixmaps[src] = pixmap
        return None if pixmap.isNull() else pixmap

    # Pointer input ----------------------------------------------------------

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            QWidget.mousePressEvent(self, event)
            return
        pos = event.position()
        hit = self.hit_test(pos)
        self._press_hit = hit
        self._press_pos = pos
        if hit is None:
            QWidget.mousePressEvent(self, event)
            return
        layer_index, overlay_index, on_handle = hit
        if self._controller.edit_mode:
            self._store.select_overlay(layer_index, overlay_index)
        point = (pos.x(), pos.y())
        if on_handle:
            started = self._controller.begin_resize(layer_index, overlay_index, point)
            cursor = Qt.CursorShape.SizeFDiagCursor
        else:
            started = self._controller.begin_drag(layer_index, overlay_index, point)
            cursor = Qt.CursorShape.ClosedHandCursor
        if started:
            self.setCursor(cursor)
        event.accept()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        if self._controller.pointer_held:
            self._controller.pointer_move((pos.x(), pos.y()))
            event.accept()
            return
        hit = self.hit_test(pos)
        if hit is None:
            self.unsetCursor()
        elif not self._controller.edit_mode:
            self.setCursor(Qt.CursorShape.PointingHandCursor)
        else:
            self.setCursor(Qt.CursorShape.SizeFDiagCursor if hit[2] else Qt.CursorShape.OpenHandCursor)
        QWidget.mouseMoveEvent(self, event)

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            QWidget.mouseReleaseEvent(self, event)
            return
        pos = event.position()
        press_hit, press_pos = self._press_hit, self._press_pos
        self._press_hit = None
        self._press_pos = None
        self._controller.pointer_release()
        self.unsetCursor()
        if press_hit is not None and press_pos is not None:
            moved = abs(pos.x() - press_pos.x()) + abs(pos.y() - press_pos.y())
            if moved <= CLICK_SLOP_PX:
                self._controller.handle_click(press_hit[0], press_hit[1])
        event.accept()

    # Defensive release paths ------------------------------------------------

    def changeEvent(self, event) -> None:  # type: ignore[override]
        if event.type() == QEvent.Type.ActivationChange and not self.isActiveWindow():
            self._controller.cancel(reason="window deactivated")
        QWidget.changeEvent(self, event)

    def focusOutEvent(self, event) -> None:  # type: ignore[override]
        self._controller.cancel(reason="focus lost")
        QWidget.focusOutEvent(self, event)

    def hideEvent(self, event) -> None:  # type: ignore[override]
        self._controller.cancel(reason="hidden")
        QWidget.hideEvent(self, event)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._controller.teardown()
        self._subscription.close()
        QWidget.closeEvent(self, event)

    def _open_target(self, target: str) -> None:
        url = QUrl.fromUserInput(target)
        if not QDesktopServices.openUrl(url):
            _LOGGER.warning("Could not open overlay target %s", target)
