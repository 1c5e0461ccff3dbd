#!/usr/bin/env python3
"""
SIGNATURE REFINER - GUI Application

PySide6 application that turns a photographed or scanned signature into
pure black ink on a transparent background, with interactive cropping.
"""

import os
os.environ["QT_LOGGING_RULES"] = "qt.qpa.fonts=false"

import sys
import time
import argparse
from pathlib import Path
from typing import List, Optional

from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QFileDialog, QFrame
)
from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QAction, QKeySequence, QPalette, QColor

import storage
from crop_geometry import InvalidCropError
from processing import IMAGE_EXTENSIONS, ImageDecodeError, ThresholdParams
from services.batch_processor import BatchProcessor, BatchResult, ProcessJob
from services.memory_manager import MemoryManager
from services.processing_service import ThresholdService
from services.refine_session import RefineSession
from state import RefineState
from ui_constants import Colors, Dimensions, Styles, get_accent_button_style
from widgets import SliderWithButtons, ImagePanel, CropCanvas

APP_TITLE = "SIGNATURE REFINER"
DEFAULT_EXPORT_NAME = "refined_signature.png"

LUMINANCE_INFO = (
    "Pixels brighter than this value become transparent background. "
    "Raise it to keep lighter strokes, lower it to strip more of a grey or tinted paper."
)
ALPHA_INFO = (
    "Pixels whose existing opacity is below this value become transparent background. "
    "Only matters for images that already carry an alpha channel."
)


class SignatureRefinerGUI(QMainWindow):
    """Main application window."""

    def __init__(self, params: Optional[ThresholdParams] = None):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self.setMinimumSize(1100, 700)

        self._storage = storage.get_storage()
        self._state = RefineState(params)
        self._session = RefineSession(self._state.params)
        self._threshold_service = ThresholdService(self)
        self._threshold_service.resultReady.connect(self._on_threshold_result)
        self._threshold_service.errorOccurred.connect(self._on_threshold_error)

        # File list for CLI multi-file support
        self.file_list: List[str] = []
        self.file_index = 0

        # Sliders fire continuously; coalesce bursts into one threshold pass
        self.update_timer = QTimer()
        self.update_timer.setSingleShot(True)
        self.update_timer.setInterval(30)
        self.update_timer.timeout.connect(self._do_process)

        self._setup_ui()
        self._setup_menu()

        self._state.luminanceThresholdChanged.connect(self.luminance_slider.setValue)
        self._state.alphaCutoffChanged.connect(self.alpha_slider.setValue)
        self._state.paramsChanged.connect(self._on_params_changed)
        self._state.cropModeChanged.connect(self._on_crop_mode_changed)
        self._state.cropResetRequested.connect(self._reset_crop)
        self._update_button_states()

    def _setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        content_layout = QHBoxLayout(central)
        content_layout.setContentsMargins(10, 10, 10, 10)

        # Center: original and refined previews
        self.panel_original = ImagePanel("Original")
        content_layout.addWidget(self.panel_original, stretch=1)

        self.panel_refined = CropCanvas("Refined Signature", self._session.crop)
        self.panel_refined.cropChanged.connect(lambda _rect: self._clear_error())
        content_layout.addWidget(self.panel_refined, stretch=1)

        content_layout.addWidget(self._create_sidebar_content())

    def _create_sidebar_content(self) -> QWidget:
        sidebar = QFrame()
        sidebar.setFixedWidth(Dimensions.PANEL_WIDTH_WIDE)
        sidebar.setStyleSheet(f"QFrame {{ background-color: {Colors.BACKGROUND_DARK}; }}")
        layout = QVBoxLayout(sidebar)
        layout.setContentsMargins(12, 12, 12, 12)

        # Upload
        self.open_btn = QPushButton("Choose Signature Image")
        self.open_btn.setStyleSheet(get_accent_button_style())
        self.open_btn.clicked.connect(self._load_image)
        layout.addWidget(self.open_btn)

        self.file_label = QLabel("No image loaded")
        self.file_label.setStyleSheet(Styles.PANEL_TITLE)
        self.file_label.setWordWrap(True)
        layout.addWidget(self.file_label)

        self.error_label = QLabel("")
        self.error_label.setStyleSheet(Styles.ERROR_LABEL)
        self.error_label.setWordWrap(True)
        self.error_label.hide()
        layout.addWidget(self.error_label)

        layout.addSpacing(12)

        # Refinement controls
        defaults = self._state.params
        self.luminance_slider = SliderWithButtons(
            "Luminance Threshold", 0, 255, defaults.luminance_threshold,
            step=1, coarse_step=10, info_text=LUMINANCE_INFO)
        self.luminance_slider.valueChanged.connect(
            lambda v: setattr(self._state, 'luminance_threshold', v))
        layout.addWidget(self.luminance_slider)

        self.alpha_slider = SliderWithButtons(
            "Alpha Cutoff", 0, 255, defaults.alpha_cutoff,
            step=1, coarse_step=10, info_text=ALPHA_INFO)
        self.alpha_slider.valueChanged.connect(
            lambda v: setattr(self._state, 'alpha_cutoff', v))
        layout.addWidget(self.alpha_slider)

        layout.addSpacing(12)

        # Crop actions
        self.crop_btn = QPushButton("Crop")
        self.crop_btn.setFixedWidth(Dimensions.BUTTON_WIDTH_EXTRA)
        self.crop_btn.setToolTip("Enter crop mode (C)")
        self.crop_btn.clicked.connect(self._enter_crop_mode)
        layout.addWidget(self.crop_btn)

        crop_row = QHBoxLayout()
        self.apply_crop_btn = QPushButton("Apply")
        self.apply_crop_btn.setStyleSheet(get_accent_button_style())
        self.apply_crop_btn.setToolTip("Apply crop (Enter)")
        self.apply_crop_btn.clicked.connect(self._apply_crop)
        crop_row.addWidget(self.apply_crop_btn)

        self.cancel_crop_btn = QPushButton("Cancel")
        self.cancel_crop_btn.setToolTip("Leave crop mode (Esc)")
        self.cancel_crop_btn.clicked.connect(self._cancel_crop)
        crop_row.addWidget(self.cancel_crop_btn)

        self.reset_crop_btn = QPushButton("Reset")
        self.reset_crop_btn.setToolTip("Select the whole image")
        self.reset_crop_btn.clicked.connect(self._state.request_crop_reset)
        crop_row.addWidget(self.reset_crop_btn)
        layout.addLayout(crop_row)

        layout.addStretch()

        # Export
        self.download_btn = QPushButton("Download PNG")
        self.download_btn.setStyleSheet(get_accent_button_style())
        self.download_btn.clicked.connect(self._export_image)
        layout.addWidget(self.download_btn)

        return sidebar

    def _setup_menu(self):
        menu = self.menuBar()
        file_menu = menu.addMenu("File")

        open_action = QAction("Open...", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._load_image)
        file_menu.addAction(open_action)

        export_action = QAction("Export PNG...", self)
        export_action.setShortcut(QKeySequence.Save)
        export_action.triggered.connect(self._export_image)
        file_menu.addAction(export_action)

        file_menu.addSeparator()

        quit_action = QAction("Quit", self)
        quit_action.setShortcut(QKeySequence.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        edit_menu = menu.addMenu("Edit")

        reset_params_action = QAction("Reset Thresholds", self)
        reset_params_action.triggered.connect(self._state.reset_params)
        edit_menu.addAction(reset_params_action)

        save_defaults_action = QAction("Use Current Thresholds as Default", self)
        save_defaults_action.triggered.connect(
            lambda: self._storage.set_default_params(self._state.params))
        edit_menu.addAction(save_defaults_action)

        edit_menu.addSeparator()

        clear_saved_action = QAction("Clear Saved Thresholds", self)
        clear_saved_action.triggered.connect(self._clear_saved_settings)
        edit_menu.addAction(clear_saved_action)

    def keyPressEvent(self, event):
        """Handle keyboard shortcuts."""
        key = event.key()
        if key == Qt.Key_C and not event.modifiers():
            if self._state.crop_mode:
                self._cancel_crop()
            else:
                self._enter_crop_mode()
        elif key in (Qt.Key_Return, Qt.Key_Enter) and self._state.crop_mode:
            self._apply_crop()
        elif key == Qt.Key_Escape and self._state.crop_mode:
            self._cancel_crop()
        elif key == Qt.Key_Left:
            self._prev_image()
        elif key == Qt.Key_Right:
            self._next_image()
        else:
            super().keyPressEvent(event)

    # --- Loading ---

    def _load_image(self):
        paths, _ = QFileDialog.getOpenFileNames(
            self, "Choose Signature Image", self._storage.get_last_open_dir(),
            "Images (" + " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS)) + ");;All Files (*)"
        )
        if paths:
            self.set_file_list(paths)

    def set_file_list(self, paths: list):
        """Set multiple files (dialog or CLI) and load the first one."""
        valid_paths = [p for p in paths if Path(p).exists()]
        if valid_paths:
            self.file_list = valid_paths
            self.file_index = 0
            self._load_current_file()

    def _prev_image(self):
        self._step_file(-1)

    def _next_image(self):
        self._step_file(1)

    def _step_file(self, delta: int):
        """Move through the file list, staying put if the next file fails to load."""
        target = self.file_index + delta
        if not 0 <= target < len(self.file_list):
            return
        previous = self.file_index
        self.file_index = target
        if not self._load_current_file():
            self.file_index = previous
            self._update_nav_state()

    def _load_current_file(self) -> bool:
        """Load the current file from the file list."""
        if not self.file_list or self.file_index >= len(self.file_list):
            return False
        return self._load_image_from_path(self.file_list[self.file_index])

    def _load_image_from_path(self, path: str) -> bool:
        _t_start = time.time()
        self._save_current_settings()

        try:
            original = self._session.load_file(path, refresh=False)
        except (ImageDecodeError, ImportError) as e:
            self._show_error(str(e))
            return False
        _t_load = time.time() - _t_start

        # Restore per-image thresholds without triggering a background pass
        params = self._storage.load_params(self._session.image_hash) or self._storage.get_default_params()
        self._state.blockSignals(True)
        self._state.set_params(params)
        self._state.crop_mode = False
        self._state.blockSignals(False)
        self.luminance_slider.setValue(params.luminance_threshold)
        self.alpha_slider.setValue(params.alpha_cutoff)

        _t0 = time.time()
        self._session.set_params(self._state.params)
        _t_process = time.time() - _t0

        self._storage.set_last_open_dir(str(Path(path).parent))
        self._clear_error()
        self.panel_original.set_image(original)
        self.panel_refined.set_image(self._session.result)
        self.file_label.setText(f"{Path(path).name}  ({original.width}×{original.height})")
        self._update_nav_state()
        self._update_button_states()

        _t_total = time.time() - _t_start
        print(f"[PERF] load={_t_load*1000:.0f}ms threshold={_t_process*1000:.0f}ms | TOTAL={_t_total*1000:.0f}ms")
        return True

    def _update_nav_state(self):
        count = len(self.file_list)
        if count > 0 and self._session.path is not None:
            name = self._session.path.name
            self.setWindowTitle(f"{APP_TITLE} - {name} ({self.file_index + 1}/{count})")
        else:
            self.setWindowTitle(APP_TITLE)

    def _save_current_settings(self):
        """Remember the thresholds used for the current image."""
        if self._session.image_hash:
            self._storage.save_params(self._session.image_hash, self._session.params)

    def _clear_saved_settings(self):
        """Forget the per-image thresholds of every image seen so far."""
        count = self._storage.get_stats()['image_count']
        self._storage.clear_all()
        self.statusBar().showMessage(f"Cleared saved thresholds for {count} image(s)", 5000)

    # --- Thresholding ---

    def _on_params_changed(self, params: ThresholdParams):
        self._session.set_params(params, recompute=False)
        if self._session.has_image:
            self.update_timer.start()

    def _do_process(self):
        request = self._session.begin_request()
        if request is None:
            return
        self._threshold_service.request(request)

    def _on_threshold_result(self, request_id: int, result):
        if self._session.accept_result(request_id, result):
            self.panel_refined.set_image(self._session.result)

    def _on_threshold_error(self, request_id: int, message: str):
        self._show_error(f"Processing failed: {message}")

    # --- Cropping ---

    def _enter_crop_mode(self):
        if not self._session.has_image:
            return
        self._state.crop_mode = True

    def _cancel_crop(self):
        self._state.crop_mode = False

    def _on_crop_mode_changed(self, enabled: bool):
        if enabled:
            self._session.enter_crop_mode()
        else:
            self._session.cancel_crop()
        self.panel_refined.setCursor(Qt.CrossCursor if enabled else Qt.ArrowCursor)
        self._update_button_states()
        self.panel_refined.update()

    def _reset_crop(self):
        self._session.reset_crop()
        self.panel_refined.update()

    def _apply_crop(self):
        scale_x, scale_y = self.panel_refined.display_scale()
        try:
            cropped = self._session.apply_crop(scale_x, scale_y)
        except InvalidCropError as e:
            self._show_error(str(e))
            return
        self._clear_error()
        self._state.crop_mode = False
        self.panel_refined.set_image(cropped)
        self.file_label.setText(f"{self._session.path.name if self._session.path else 'Image'}  "
                                f"(cropped to {cropped.width}×{cropped.height})")

    def _update_button_states(self):
        has_image = self._session.has_image
        cropping = self._state.crop_mode
        self.crop_btn.setEnabled(has_image and not cropping)
        self.apply_crop_btn.setEnabled(cropping)
        self.cancel_crop_btn.setEnabled(cropping)
        self.reset_crop_btn.setEnabled(cropping)
        self.download_btn.setEnabled(has_image and not cropping)
        self.luminance_slider.setEnabled(not cropping)
        self.alpha_slider.setEnabled(not cropping)

    # --- Export ---

    def _export_image(self):
        if self._session.result is None or self._state.crop_mode:
            return
        default_dir = self._storage.get_last_open_dir()
        path, _ = QFileDialog.getSaveFileName(
            self, "Download Refined Signature", str(Path(default_dir) / DEFAULT_EXPORT_NAME),
            "PNG (*.png)"
        )
        if not path:
            return
        if not path.lower().endswith('.png'):
            path += '.png'
        try:
            self._session.export_png(path)
        except OSError as e:
            self._show_error(f"Could not save file: {e}")
            return
        self.statusBar().showMessage(f"Saved {path}", 5000)

    # --- Errors ---

    def _show_error(self, message: str):
        self.error_label.setText(message)
        self.error_label.show()
        self.statusBar().showMessage(message, 8000)

    def _clear_error(self):
        self.error_label.clear()
        self.error_label.hide()

    def closeEvent(self, event):
        """Save current settings and wait for background passes before closing."""
        self._save_current_settings()
        self.update_timer.stop()
        self._threshold_service.shutdown()
        event.accept()


def expand_paths(paths: list[str], recursive: bool = False) -> list[str]:
    """Expand paths to list of image files.

    - Regular files are included if they have a supported extension
    - Directories are expanded to their image files (recursively if recursive=True)
    """
    result = []
    for path in paths:
        p = Path(path)
        if p.is_file():
            if p.suffix.lower() in IMAGE_EXTENSIONS:
                result.append(str(p))
        elif p.is_dir():
            pattern = '**/*' if recursive else '*'
            for child in sorted(p.glob(pattern)):
                if child.is_file() and child.suffix.lower() in IMAGE_EXTENSIONS:
                    result.append(str(child))
    return result


def run_batch(files: list[str], output_dir: str, params: ThresholdParams,
              workers: Optional[int] = None) -> BatchResult:
    """Refine ``files`` into ``output_dir`` without a window."""
    settings = {
        'output_dir': output_dir,
        'luminance_threshold': params.luminance_threshold,
        'alpha_cutoff': params.alpha_cutoff,
    }
    jobs = [ProcessJob(index=i, path=path, settings=settings) for i, path in enumerate(files)]

    def on_item_complete(index: int, result: dict):
        print(f"[{index + 1}/{len(files)}] {result['output']} "
              f"({result['width']}x{result['height']}, {result['ink_pixels']} ink pixels)")

    def on_error(index: int, message: str):
        print(f"[{index + 1}/{len(files)}] FAILED {files[index]}: {message}")

    processor = BatchProcessor(on_item_complete=on_item_complete, on_error=on_error,
                               max_workers=workers)
    resources = MemoryManager().get_resource_summary()
    print(f"[BatchProcessor] {len(files)} images, {processor.get_worker_count()} workers "
          f"({resources['cpu_count']} CPUs, {resources['available_memory_gb']}/"
          f"{resources['total_memory_gb']} GB free)")
    result = processor.run(jobs)
    print(f"Refined {result.success_count}/{result.total} images into {output_dir}")
    return result


def main():
    # Parse arguments before QApplication consumes sys.argv
    parser = argparse.ArgumentParser(description='Signature Refiner')
    parser.add_argument('-r', '--recursive', action='store_true',
                        help='Recursively load images from directories')
    parser.add_argument('-o', '--output', metavar='DIR',
                        help='Refine all inputs into DIR without opening a window')
    parser.add_argument('--luminance', type=int, default=None,
                        help='Luminance threshold 0-255 (default: saved preference, 200)')
    parser.add_argument('--alpha', type=int, default=None,
                        help='Alpha cutoff 0-255 (default: saved preference, 50)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes for batch mode (default: based on CPU/memory)')
    parser.add_argument('paths', nargs='*', help='Image files or directories to load')
    args = parser.parse_args()

    defaults = storage.get_storage().get_default_params()
    params = ThresholdParams(
        luminance_threshold=args.luminance if args.luminance is not None else defaults.luminance_threshold,
        alpha_cutoff=args.alpha if args.alpha is not None else defaults.alpha_cutoff,
    ).clamped()

    if args.output:
        files = expand_paths(args.paths, recursive=args.recursive)
        if not files:
            parser.error("no supported image files found in the given paths")
        result = run_batch(files, args.output, params, workers=args.workers)
        sys.exit(0 if result.ok else 1)

    app = QApplication(sys.argv)
    app.setStyle('Fusion')

    palette = QPalette()
    palette.setColor(QPalette.Window, QColor(53, 53, 53))
    palette.setColor(QPalette.WindowText, Qt.white)
    palette.setColor(QPalette.Base, QColor(25, 25, 25))
    palette.setColor(QPalette.AlternateBase, QColor(53, 53, 53))
    palette.setColor(QPalette.ToolTipBase, QColor(40, 40, 40))
    palette.setColor(QPalette.ToolTipText, Qt.white)
    palette.setColor(QPalette.Text, Qt.white)
    palette.setColor(QPalette.Button, QColor(53, 53, 53))
    palette.setColor(QPalette.ButtonText, Qt.white)
    palette.setColor(QPalette.BrightText, Qt.red)
    palette.setColor(QPalette.Link, QColor(Colors.ACCENT_PRIMARY))
    palette.setColor(QPalette.Highlight, QColor(Colors.ACCENT_PRIMARY))
    palette.setColor(QPalette.HighlightedText, Qt.white)
    app.setPalette(palette)

    window = SignatureRefinerGUI(params)
    window.show()

    # Load files from command line
    if args.paths:
        files = expand_paths(args.paths, recursive=args.recursive)
        if files:
            window.set_file_list(files)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
