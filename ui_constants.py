"""
SIGNATURE REFINER - UI Constants

Centralized theme colors, dimensions, and styling constants.
Import from here instead of hardcoding values throughout the codebase.

Usage:
    from ui_constants import Colors, Dimensions, Styles

    button.setStyleSheet(f"background-color: {Colors.ACCENT_PRIMARY};")
    button.setFixedSize(*Dimensions.BUTTON_SMALL)
"""


class Colors:
    """Centralized color definitions for the application theme."""

    # === Background Colors ===
    BACKGROUND_DARK = "#2a2a2a"     # Panels, sidebar, info popups

    # === Transparency Checkerboard ===
    CHECKER_LIGHT = "#d0d0d0"
    CHECKER_DARK = "#a8a8a8"

    # === Text Colors ===
    TEXT_MUTED = "#888888"          # Muted/disabled text

    # === Accent Colors ===
    ACCENT_PRIMARY = "#3b82f6"      # Primary accent (blue) - crop box, highlights
    ACCENT_DANGER = "#e74c3c"       # Danger/destructive actions, errors (red)

    # === Crop Overlay ===
    CROP_HANDLE_BORDER = "#ffffff"  # White ring around handles
    CROP_SHADE_TOP = (0, 0, 0, 77)      # rgba, ~0.3 opacity
    CROP_SHADE_BOTTOM = (0, 0, 0, 128)  # rgba, ~0.5 opacity


class Dimensions:
    """Centralized dimension constants for consistent sizing."""

    # === Button Sizes (width, height) ===
    BUTTON_SMALL = (24, 24)         # Reset buttons, small icons

    # === Button Widths (single dimension) ===
    BUTTON_WIDTH_STANDARD = 50      # Standard +/- buttons
    BUTTON_WIDTH_EXTRA = 120        # "Crop" / "Download" buttons

    # === Panel Dimensions ===
    PANEL_WIDTH_WIDE = 320          # Controls sidebar

    # === Canvas ===
    CANVAS_MIN_SIZE = (200, 150)
    CHECKER_SIZE = 8                # Transparency checkerboard square
    CROP_BORDER_WIDTH = 2
    CROP_DASH_PATTERN = [5, 5]      # Dashed crop outline, in pen widths


class Styles:
    """Pre-built style strings for common patterns."""

    ERROR_LABEL = f"""
        QLabel {{
            color: {Colors.ACCENT_DANGER};
            font-weight: bold;
        }}
    """

    PANEL_TITLE = f"""
        QLabel {{
            color: {Colors.TEXT_MUTED};
            font-size: 12px;
        }}
    """


def get_accent_button_style() -> str:
    """Return the accent button style string (for dynamic application)."""
    return f"QPushButton {{ background-color: {Colors.ACCENT_PRIMARY}; color: white; font-weight: bold; }}"
