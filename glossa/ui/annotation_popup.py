"""Popup showing an annotation dialogue with a follow-up box."""

from typing import Optional

from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)
from PySide6.QtCore import QPoint, Qt, Signal

from ..config.themes import theme, metrics
from ..orchestrator.annotation_engine import AnnotationDialogue, DialogueTurn
from ..storage import ROLE_USER
from ..utils.markdown_renderer import get_markdown_css, markdown_to_html


POPUP_WIDTH = 400
POPUP_HEIGHT = 420


def render_dialogue(turns: list[DialogueTurn], busy: bool = False) -> str:
    """Render dialogue turns as one HTML document."""
    parts = []
    for turn in turns:
        who = "You" if turn.role == ROLE_USER else "Glossa"
        parts.append(f"<p><b>{who}</b></p>{markdown_to_html(turn.content)}")
    if busy:
        parts.append("<p><i>Thinking...</i></p>")
    return (
        f"<html><head><style>{get_markdown_css()}</style></head>"
        f"<body>{''.join(parts)}</body></html>"
    )


class AnnotationPopup(QFrame):
    """Floating panel for one annotation dialogue."""

    follow_up_submitted = Signal(str)

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent, Qt.WindowType.Tool | Qt.WindowType.FramelessWindowHint)
        self._dialogue: Optional[AnnotationDialogue] = None
        self._setup_ui()

    def _setup_ui(self) -> None:
        self.setFixedSize(POPUP_WIDTH, POPUP_HEIGHT)
        self.setStyleSheet(f"""
            AnnotationPopup {{
                background-color: {theme.background_elevated};
                border: 1px solid {theme.border};
                border-radius: {metrics.radius_large}px;
            }}
        """)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(
            metrics.padding_medium, metrics.padding_medium,
            metrics.padding_medium, metrics.padding_medium,
        )

        header = QHBoxLayout()
        title = QLabel("Explain")
        title.setStyleSheet("font-weight: 600;")
        header.addWidget(title)
        header.addStretch()
        close_button = QPushButton("Close")
        close_button.setObjectName("secondaryButton")
        close_button.clicked.connect(self.hide)
        header.addWidget(close_button)
        layout.addLayout(header)

        self.body = QTextBrowser()
        self.body.setOpenExternalLinks(True)
        layout.addWidget(self.body)

        row = QHBoxLayout()
        self.question_input = QLineEdit()
        self.question_input.setPlaceholderText("Ask a follow-up...")
        self.question_input.returnPressed.connect(self._on_submit)
        row.addWidget(self.question_input)
        self.ask_button = QPushButton("Ask")
        self.ask_button.clicked.connect(self._on_submit)
        row.addWidget(self.ask_button)
        layout.addLayout(row)

    @property
    def dialogue(self) -> Optional[AnnotationDialogue]:
        """The dialogue on display."""
        return self._dialogue

    def show_loading(self, seed: DialogueTurn, near: QPoint) -> None:
        """Open the popup while the first explanation is requested."""
        self._dialogue = None
        self.body.setHtml(render_dialogue([seed], busy=True))
        self._set_busy(True)
        self._open_near(near)

    def show_dialogue(self, dialogue: AnnotationDialogue, near: Optional[QPoint] = None) -> None:
        """Display a dialogue, opening the popup if given a position."""
        self._dialogue = dialogue
        self.refresh()
        if near is not None:
            self._open_near(near)

    def refresh(self) -> None:
        """Re-render the current dialogue."""
        if self._dialogue is None:
            return
        self.body.setHtml(render_dialogue(self._dialogue.turns, self._dialogue.busy))
        bar = self.body.verticalScrollBar()
        bar.setValue(bar.maximum())
        self._set_busy(self._dialogue.busy)

    def _set_busy(self, busy: bool) -> None:
        self.question_input.setEnabled(not busy)
        self.ask_button.setEnabled(not busy)
        if not busy:
            self.question_input.setFocus()

    def _open_near(self, near: QPoint) -> None:
        screen = self.screen().availableGeometry()
        x = min(max(near.x(), screen.left() + 16), screen.right() - POPUP_WIDTH - 16)
        y = near.y() + 10
        if y + POPUP_HEIGHT > screen.bottom() - 16:
            y = max(screen.top() + 16, near.y() - POPUP_HEIGHT - 10)
        self.move(x, y)
        self.show()
        self.raise_()

    def _on_submit(self) -> None:
        question = self.question_input.text().strip()
        if not question or self._dialogue is None or self._dialogue.busy:
            return
        self.question_input.clear()
        self.follow_up_submitted.emit(question)
