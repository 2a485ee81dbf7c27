"""Chat panel: message bubbles for the open conversation."""

from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

from PySide6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QScrollArea,
    QLabel,
    QFrame,
    QSizePolicy,
    QTextBrowser,
    QPushButton,
)
from PySide6.QtCore import Qt, QEvent, QObject, QPoint, Signal, QUrl
from PySide6.QtGui import QDesktopServices

from ..config.themes import theme, fonts, metrics
from ..storage import ROLE_USER, Annotation, Conversation, Message
from ..utils.markdown_renderer import annotation_id_from_href, render_markdown


def format_timestamp(dt: datetime) -> str:
    """Format a datetime for display ("2:34 PM" today, else with date)."""
    time_str = dt.strftime("%I:%M %p").lstrip("0")
    if dt.date() == datetime.now().date():
        return time_str
    return dt.strftime("%b %d, ") + time_str


THINKING_PLACEHOLDER = "_Thinking..._"


def display_content(message: Message, pending_message_id: Optional[str] = None) -> str:
    """Text to render for a message.

    Only the reply currently being streamed shows the placeholder while
    empty. A turn stopped before its first snapshot stays blank.
    """
    if not message.content and message.id == pending_message_id:
        return THINKING_PLACEHOLDER
    return message.content


class MessageBubble(QFrame):
    """One rendered message.

    Assistant bubbles report clicks with the annotation under the cursor
    and the live text selection so the window can decide what to do.
    """

    clicked = Signal(str, str, str, QPoint)  # message id, annotation id, selection, pos

    def __init__(self, message: Message, parent: QWidget | None = None):
        super().__init__(parent)
        self.message_id = message.id
        self.role = message.role
        self._rendered: Tuple[str, Tuple[str, ...]] = ("", ())
        self._setup_ui(message)

    def _setup_ui(self, message: Message) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(4)

        header = QLabel(
            f"{'You' if self.role == ROLE_USER else 'Glossa'} · "
            f"{format_timestamp(message.created_at)}"
        )
        header.setStyleSheet(
            f"color: {theme.text_disabled}; font-size: {metrics.font_small}px;"
        )
        layout.addWidget(header)

        if message.image_url:
            layout.addWidget(QLabel("[image attached]"))

        self.content_browser = QTextBrowser()
        self.content_browser.setOpenLinks(False)
        self.content_browser.anchorClicked.connect(self._on_link_clicked)
        self.content_browser.document().setDocumentMargin(0)
        self.content_browser.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.content_browser.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.content_browser.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Minimum)
        self.content_browser.viewport().installEventFilter(self)

        bubble_bg = theme.user_bubble if self.role == ROLE_USER else theme.assistant_bubble
        self.setStyleSheet(f"""
            MessageBubble {{
                background-color: {bubble_bg};
                border: 1px solid {theme.border_subtle};
                border-radius: {metrics.radius_large}px;
                padding: {metrics.padding_medium}px;
            }}
            QTextBrowser {{
                font-family: {fonts.chat};
            }}
        """)
        layout.addWidget(self.content_browser)
        if self.role == ROLE_USER:
            self.setMaximumWidth(760)

    def show_content(self, content: str, annotations: Sequence[Annotation] = ()) -> None:
        """Render content, skipping work when nothing changed."""
        key = (content, tuple(a.id for a in annotations))
        if key == self._rendered:
            return
        self._rendered = key

        self.content_browser.setHtml(
            render_markdown(content, annotations, is_user=self.role == ROLE_USER)
        )
        self.content_browser.document().setTextWidth(self.content_browser.viewport().width())
        doc_height = self.content_browser.document().size().height()
        self.content_browser.setMinimumHeight(int(doc_height) + 4)

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        """Report mouse releases on the content."""
        if (
            watched is self.content_browser.viewport()
            and event.type() == QEvent.Type.MouseButtonRelease
            and self.role != ROLE_USER
        ):
            pos = event.position().toPoint()
            annotation_id = annotation_id_from_href(self.content_browser.anchorAt(pos)) or ""
            # Qt separates paragraphs with U+2029
            selection = self.content_browser.textCursor().selectedText().replace("\u2029", "\n")
            self.clicked.emit(
                self.message_id,
                annotation_id,
                selection,
                self.content_browser.viewport().mapToGlobal(pos),
            )
        return super().eventFilter(watched, event)

    def _on_link_clicked(self, url: QUrl) -> None:
        # Annotation links are handled through clicked
        if annotation_id_from_href(url.toString()) is None:
            QDesktopServices.openUrl(url)


class ChatPanel(QWidget):
    """Scrollable list of message bubbles kept in sync with the store."""

    message_clicked = Signal(str, str, str, QPoint)
    ask_requested = Signal()
    background_clicked = Signal()

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self._bubbles: Dict[str, MessageBubble] = {}
        self._conversation_id: Optional[str] = None
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidgetResizable(True)
        self.scroll_area.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)

        self._container = QWidget()
        self._messages_layout = QVBoxLayout(self._container)
        self._messages_layout.setContentsMargins(
            metrics.padding_large, metrics.padding_large,
            metrics.padding_large, metrics.padding_large,
        )
        self._messages_layout.setSpacing(metrics.padding_medium)
        self._messages_layout.addStretch()
        self._container.installEventFilter(self)

        self.scroll_area.setWidget(self._container)
        layout.addWidget(self.scroll_area)

        self._empty_label = QLabel("Start a conversation. Select text in a reply to explain it.")
        self._empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._empty_label.setStyleSheet(f"color: {theme.text_muted};")
        self._messages_layout.insertWidget(0, self._empty_label)

        # Floating "ask" affordance shown for a live selection
        self.ask_button = QPushButton("Explain selection", self)
        self.ask_button.setCursor(Qt.CursorShape.PointingHandCursor)
        self.ask_button.clicked.connect(self.ask_requested.emit)
        self.ask_button.hide()

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        """Clicks on empty space dismiss the ask affordance."""
        if watched is self._container and event.type() == QEvent.Type.MouseButtonRelease:
            self.background_clicked.emit()
        return super().eventFilter(watched, event)

    def show_ask_button(self, global_pos: QPoint) -> None:
        """Show the ask affordance near a point on screen."""
        local = self.mapFromGlobal(global_pos) + QPoint(8, 12)
        self.ask_button.adjustSize()
        x = min(local.x(), max(0, self.width() - self.ask_button.width() - 8))
        y = min(local.y(), max(0, self.height() - self.ask_button.height() - 8))
        self.ask_button.move(x, y)
        self.ask_button.show()
        self.ask_button.raise_()

    def hide_ask_button(self) -> None:
        """Hide the ask affordance."""
        self.ask_button.hide()

    def clear(self) -> None:
        """Remove every bubble."""
        for bubble in self._bubbles.values():
            self._messages_layout.removeWidget(bubble)
            bubble.deleteLater()
        self._bubbles.clear()
        self._conversation_id = None
        self._empty_label.show()
        self.hide_ask_button()

    def sync(
        self,
        conversation: Optional[Conversation],
        pending_message_id: Optional[str] = None,
    ) -> None:
        """Bring the bubbles in line with a conversation.

        Existing bubbles are re-rendered only when their content or
        annotations changed; new messages get new bubbles.

        Args:
            conversation: Conversation to show, or None to clear
            pending_message_id: Reply still waiting for its first snapshot
        """
        if conversation is None:
            self.clear()
            return
        if conversation.id != self._conversation_id:
            self.clear()
            self._conversation_id = conversation.id

        at_bottom = self._is_at_bottom()
        for message in conversation.messages:
            bubble = self._bubbles.get(message.id)
            if bubble is None:
                bubble = MessageBubble(message)
                bubble.clicked.connect(self.message_clicked.emit)
                self._bubbles[message.id] = bubble
                # Keep the trailing stretch last
                self._messages_layout.insertWidget(self._messages_layout.count() - 1, bubble)
            bubble.show_content(
                display_content(message, pending_message_id),
                conversation.annotations_for(message.id),
            )

        self._empty_label.setVisible(not conversation.messages)
        if at_bottom:
            self._scroll_to_bottom()

    def _is_at_bottom(self) -> bool:
        bar = self.scroll_area.verticalScrollBar()
        return bar.value() >= bar.maximum() - 40

    def _scroll_to_bottom(self) -> None:
        bar = self.scroll_area.verticalScrollBar()
        bar.setValue(bar.maximum())
