"""
SIGNATURE REFINER - Control Widgets

Reusable control widgets for the threshold parameters.
"""

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QSlider, QPushButton
)
from PySide6.QtCore import Qt, Signal

from ui_constants import Colors, Dimensions, get_accent_button_style


class SliderWithButtons(QWidget):
    """An integer slider with -/+ buttons for fine adjustment and reset.

    Values are always clamped to [min_val, max_val] before being emitted.
    The reset button is highlighted while the value differs from its default.
    """

    valueChanged = Signal(int)

    def __init__(self, label: str, min_val: int = 0, max_val: int = 255, default: int = 0,
                 step: int = 1, coarse_step: int = None, info_text: str = None):
        super().__init__()
        self.step = step
        self.coarse_step = coarse_step
        self.min_val = min_val
        self.max_val = max_val
        self.default = default
        self._info_text = info_text
        self._label_text = label

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 10)

        # Label, value, and reset button
        header = QHBoxLayout()
        header.addWidget(QLabel(label))

        # Info button (optional)
        if info_text:
            self.info_btn = QPushButton("ⓘ")
            self.info_btn.setFixedSize(20, 20)
            self.info_btn.setStyleSheet(f"""
                QPushButton {{
                    border: none;
                    color: {Colors.TEXT_MUTED};
                    font-size: 14px;
                }}
                QPushButton:hover {{
                    color: {Colors.ACCENT_PRIMARY};
                }}
            """)
            self.info_btn.setCursor(Qt.PointingHandCursor)
            self.info_btn.clicked.connect(self._show_info)
            header.addWidget(self.info_btn)

        header.addStretch()
        self.value_label = QLabel(str(default))
        self.value_label.setStyleSheet("font-weight: bold;")
        header.addWidget(self.value_label)

        self.reset_btn = QPushButton("↺")
        self.reset_btn.setFixedSize(*Dimensions.BUTTON_SMALL)
        self.reset_btn.clicked.connect(self._reset)
        header.addWidget(self.reset_btn)

        layout.addLayout(header)

        # Slider
        self.slider = QSlider(Qt.Horizontal)
        self.slider.setRange(min_val, max_val)
        self.slider.setSingleStep(step)
        self.slider.setValue(default)
        self.slider.valueChanged.connect(self._on_slider_change)
        layout.addWidget(self.slider)

        # +/- buttons
        btn_layout = QHBoxLayout()

        if coarse_step is not None:
            self.coarse_minus_btn = QPushButton(f"-{coarse_step}")
            self.coarse_minus_btn.setFixedWidth(40)
            self.coarse_minus_btn.clicked.connect(lambda: self._nudge(-coarse_step))
            btn_layout.addWidget(self.coarse_minus_btn)

        self.minus_btn = QPushButton(f"-{step}")
        self.minus_btn.setFixedWidth(Dimensions.BUTTON_WIDTH_STANDARD)
        self.minus_btn.clicked.connect(lambda: self._nudge(-step))
        btn_layout.addWidget(self.minus_btn)

        btn_layout.addStretch()

        self.plus_btn = QPushButton(f"+{step}")
        self.plus_btn.setFixedWidth(Dimensions.BUTTON_WIDTH_STANDARD)
        self.plus_btn.clicked.connect(lambda: self._nudge(step))
        btn_layout.addWidget(self.plus_btn)

        if coarse_step is not None:
            self.coarse_plus_btn = QPushButton(f"+{coarse_step}")
            self.coarse_plus_btn.setFixedWidth(40)
            self.coarse_plus_btn.clicked.connect(lambda: self._nudge(coarse_step))
            btn_layout.addWidget(self.coarse_plus_btn)

        layout.addLayout(btn_layout)

        self._update_reset_style()

    def value(self) -> int:
        return self.slider.value()

    def clamp(self, val) -> int:
        return int(max(self.min_val, min(self.max_val, round(val))))

    def setValue(self, val):
        """Set the value without emitting valueChanged."""
        val = self.clamp(val)
        self.slider.blockSignals(True)
        self.slider.setValue(val)
        self.value_label.setText(str(val))
        self.slider.blockSignals(False)
        self._update_reset_style()

    def _on_slider_change(self, val):
        self.value_label.setText(str(val))
        self._update_reset_style()
        self.valueChanged.emit(val)

    def _nudge(self, delta: int):
        new_val = self.clamp(self.value() + delta)
        if new_val == self.value():
            return
        self.setValue(new_val)
        self.valueChanged.emit(new_val)

    def _reset(self):
        if self.value() == self.default:
            return
        self.setValue(self.default)
        self.valueChanged.emit(self.default)

    def _update_reset_style(self):
        """Highlight the reset button while away from the default."""
        if self.value() == self.default:
            self.reset_btn.setStyleSheet("")
            self.reset_btn.setToolTip(f"At default: {self.default}")
        else:
            self.reset_btn.setStyleSheet(get_accent_button_style())
            self.reset_btn.setToolTip(f"Reset → {self.default}")

    def _show_info(self):
        """Show info popup for this control."""
        from PySide6.QtWidgets import QDialog
        dialog = QDialog(self)
        dialog.setWindowTitle(f"{self._label_text} - Info")
        dialog.setMinimumWidth(350)
        layout = QVBoxLayout(dialog)

        title = QLabel(f"<h3>{self._label_text}</h3>")
        layout.addWidget(title)

        info = QLabel(self._info_text)
        info.setWordWrap(True)
        info.setStyleSheet(f"padding: 10px; background: {Colors.BACKGROUND_DARK}; border-radius: 4px;")
        layout.addWidget(info)

        close_btn = QPushButton("Got it")
        close_btn.clicked.connect(dialog.accept)
        layout.addWidget(close_btn)

        dialog.open()  # Non-blocking modal

    def blockSignals(self, block: bool):
        """Block/unblock signals from this widget."""
        super().blockSignals(block)
        self.slider.blockSignals(block)
