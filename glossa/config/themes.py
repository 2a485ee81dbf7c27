"""Dark theme for Glossa."""

from dataclasses import dataclass


@dataclass
class ThemeColors:
    """Color scheme.

    Dark slate backgrounds with a teal accent; annotations use a warm
    amber so they stand apart from links.
    """

    # Background layers
    background: str = "#0f1115"
    background_secondary: str = "#161a20"  # Chat panel
    background_sidebar: str = "#12151a"
    background_elevated: str = "#1d222a"  # Popups, dialogs, inputs

    # Text hierarchy
    text_primary: str = "#eef1f5"
    text_secondary: str = "#c4cad4"
    text_muted: str = "#8c95a3"
    text_disabled: str = "#5c6470"

    # Accent
    accent: str = "#14b8a6"
    accent_hover: str = "#2dd4bf"
    accent_pressed: str = "#0d9488"
    accent_subtle: str = "rgba(20, 184, 166, 0.15)"

    # Borders
    border: str = "#2f3640"
    border_subtle: str = "#20252d"
    border_focus: str = "#14b8a6"

    # Status
    error: str = "#f05252"
    warning: str = "#f59e0b"

    # Message bubbles
    user_bubble: str = "#0f766e"
    assistant_bubble: str = "#1d222a"

    # Annotation highlight
    annotation_bg: str = "rgba(245, 158, 11, 0.22)"
    annotation_underline: str = "#f59e0b"

    selection: str = "rgba(20, 184, 166, 0.3)"

    # Code blocks
    code_bg: str = "#0b0d11"
    code_border: str = "#2a2f37"


@dataclass
class ThemeFonts:
    """Font families."""

    ui: str = "'Inter', 'Segoe UI', system-ui, sans-serif"
    chat: str = "'Inter', 'Segoe UI', sans-serif"
    mono: str = "'JetBrains Mono', 'Cascadia Code', 'Consolas', monospace"


@dataclass
class ThemeMetrics:
    """Spacing and sizing."""

    radius_small: int = 6
    radius_medium: int = 8
    radius_large: int = 12

    padding_small: int = 8
    padding_medium: int = 12
    padding_large: int = 16

    font_small: int = 11
    font_normal: int = 13
    font_medium: int = 14


# Global instances
theme = ThemeColors()
fonts = ThemeFonts()
metrics = ThemeMetrics()


def get_stylesheet() -> str:
    """Generate the application stylesheet.

    Returns:
        Qt stylesheet string
    """
    return f"""
        QMainWindow, QDialog {{
            background-color: {theme.background};
        }}

        QWidget {{
            background-color: {theme.background};
            color: {theme.text_primary};
            font-family: {fonts.ui};
            font-size: {metrics.font_normal}px;
        }}

        QScrollArea {{
            background-color: transparent;
            border: none;
        }}

        QScrollBar:vertical {{
            background-color: transparent;
            width: 8px;
        }}

        QScrollBar::handle:vertical {{
            background-color: {theme.border};
            min-height: 30px;
            border-radius: 4px;
        }}

        QScrollBar::add-line:vertical, QScrollBar::sub-line:vertical {{
            height: 0;
        }}

        QTextEdit, QLineEdit {{
            background-color: {theme.background_elevated};
            color: {theme.text_primary};
            border: 1px solid {theme.border};
            border-radius: {metrics.radius_large}px;
            padding: {metrics.padding_small}px {metrics.padding_medium}px;
            selection-background-color: {theme.selection};
            font-family: {fonts.chat};
            font-size: {metrics.font_medium}px;
        }}

        QTextEdit:focus, QLineEdit:focus {{
            border: 1px solid {theme.border_focus};
        }}

        QPushButton {{
            background-color: {theme.accent};
            color: white;
            border: none;
            border-radius: {metrics.radius_medium}px;
            padding: {metrics.padding_small}px {metrics.padding_large}px;
            font-weight: 500;
        }}

        QPushButton:hover {{
            background-color: {theme.accent_hover};
        }}

        QPushButton:pressed {{
            background-color: {theme.accent_pressed};
        }}

        QPushButton:disabled {{
            background-color: {theme.border};
            color: {theme.text_disabled};
        }}

        QPushButton#secondaryButton {{
            background-color: {theme.background_elevated};
            color: {theme.text_secondary};
            border: 1px solid {theme.border};
        }}

        QLabel {{
            background-color: transparent;
        }}

        QStatusBar {{
            background-color: {theme.background_sidebar};
            color: {theme.text_muted};
            border-top: 1px solid {theme.border_subtle};
            font-size: {metrics.font_small}px;
        }}

        QComboBox {{
            background-color: {theme.background_elevated};
            border: 1px solid {theme.border};
            border-radius: {metrics.radius_medium}px;
            padding: {metrics.padding_small}px;
        }}

        QListWidget {{
            background-color: {theme.background_sidebar};
            border: none;
            outline: none;
        }}

        QListWidget::item {{
            padding: {metrics.padding_small}px {metrics.padding_medium}px;
            border-radius: {metrics.radius_small}px;
        }}

        QListWidget::item:selected {{
            background-color: {theme.accent_subtle};
            color: {theme.text_primary};
        }}

        QTextBrowser {{
            background-color: transparent;
            border: none;
            selection-background-color: {theme.selection};
        }}

        QCheckBox::indicator:checked {{
            background-color: {theme.accent};
            border-radius: 3px;
        }}
    """
