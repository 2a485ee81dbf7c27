"""Input panel for user message entry."""

import base64
import mimetypes
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import (
    QWidget,
    QHBoxLayout,
    QVBoxLayout,
    QTextEdit,
    QPushButton,
    QLabel,
    QSizePolicy,
    QFileDialog,
    QMenu,
    QToolButton,
)
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QKeyEvent

from ..config.themes import theme, metrics
from ..llm.base_adapter import ImageAttachment


IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.gif *.webp)"


def load_image(path: str) -> ImageAttachment:
    """Read an image file as a base64 attachment."""
    mime_type = mimetypes.guess_type(path)[0] or "image/png"
    data = Path(path).read_bytes()
    return ImageAttachment(base64.b64encode(data).decode("ascii"), mime_type)


class MessageInput(QTextEdit):
    """Plain-text input that submits on Ctrl+Enter."""

    submit_requested = Signal()

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self.setPlaceholderText("Ask anything... (Ctrl+Enter to send)")
        self.setAcceptRichText(False)
        self.setMinimumHeight(56)
        self.setMaximumHeight(150)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Minimum)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Submit on Ctrl+Enter, otherwise edit normally."""
        if (
            event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter)
            and event.modifiers() == Qt.KeyboardModifier.ControlModifier
        ):
            self.submit_requested.emit()
            return

        super().keyPressEvent(event)


class InputPanel(QWidget):
    """Message input with send/stop and attachment buttons."""

    message_submitted = Signal(str)
    stop_requested = Signal()
    documents_requested = Signal()
    document_remove_requested = Signal(str)

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self._image: Optional[ImageAttachment] = None
        self._streaming = False
        self._setup_ui()

    def _setup_ui(self) -> None:
        outer = QVBoxLayout(self)
        outer.setContentsMargins(
            metrics.padding_large,
            metrics.padding_small,
            metrics.padding_large,
            metrics.padding_medium,
        )
        outer.setSpacing(4)

        # Attachment status line
        self.attachment_label = QLabel()
        self.attachment_label.setStyleSheet(
            f"color: {theme.text_muted}; font-size: {metrics.font_small}px;"
        )
        self.attachment_label.hide()
        outer.addWidget(self.attachment_label)

        row = QHBoxLayout()
        row.setSpacing(metrics.padding_small)

        self.image_button = QPushButton("Image")
        self.image_button.setObjectName("secondaryButton")
        self.image_button.setToolTip("Attach one image to the next message")
        self.image_button.clicked.connect(self._on_attach_image)
        row.addWidget(self.image_button, alignment=Qt.AlignmentFlag.AlignBottom)

        self.docs_button = QPushButton("Docs")
        self.docs_button.setObjectName("secondaryButton")
        self.docs_button.setToolTip("Upload documents to this conversation")
        self.docs_button.clicked.connect(self.documents_requested.emit)
        row.addWidget(self.docs_button, alignment=Qt.AlignmentFlag.AlignBottom)

        # Lists attached documents; picking one detaches it
        self.remove_docs_button = QToolButton()
        self.remove_docs_button.setText("Remove doc")
        self.remove_docs_button.setToolTip("Remove an uploaded document from this conversation")
        self.remove_docs_button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        self.remove_docs_menu = QMenu(self.remove_docs_button)
        self.remove_docs_menu.triggered.connect(
            lambda action: self.document_remove_requested.emit(action.data())
        )
        self.remove_docs_button.setMenu(self.remove_docs_menu)
        self.remove_docs_button.hide()
        row.addWidget(self.remove_docs_button, alignment=Qt.AlignmentFlag.AlignBottom)

        self.input_field = MessageInput()
        self.input_field.submit_requested.connect(self._on_submit)
        row.addWidget(self.input_field)

        self.send_button = QPushButton("Send")
        self.send_button.setMinimumWidth(80)
        self.send_button.setMinimumHeight(44)
        self.send_button.setCursor(Qt.CursorShape.PointingHandCursor)
        self.send_button.clicked.connect(self._on_send_clicked)
        row.addWidget(self.send_button, alignment=Qt.AlignmentFlag.AlignBottom)

        outer.addLayout(row)

        self.setStyleSheet(f"""
            InputPanel {{
                background-color: {theme.background_secondary};
                border-top: 1px solid {theme.border_subtle};
            }}
        """)

    def _on_send_clicked(self) -> None:
        if self._streaming:
            self.stop_requested.emit()
        else:
            self._on_submit()

    def _on_submit(self) -> None:
        if self._streaming:
            return
        text = self.input_field.toPlainText().strip()
        if text or self._image is not None:
            self.message_submitted.emit(text)
            self.input_field.clear()

    def _on_attach_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Attach image", "", IMAGE_FILTER)
        if not path:
            return
        try:
            self._image = load_image(path)
        except OSError as e:
            self.attachment_label.setText(f"Could not read image: {e}")
            self.attachment_label.show()
            return
        self.attachment_label.setText(f"Image attached: {Path(path).name}")
        self.attachment_label.show()

    def take_image(self) -> Optional[ImageAttachment]:
        """Consume the attached image (one per turn)."""
        image, self._image = self._image, None
        self.attachment_label.hide()
        return image

    def set_streaming(self, streaming: bool) -> None:
        """Switch the send button between Send and Stop."""
        self._streaming = streaming
        self.send_button.setText("Stop" if streaming else "Send")
        self.image_button.setEnabled(not streaming)
        self.docs_button.setEnabled(not streaming)
        self.remove_docs_button.setEnabled(not streaming)

    def show_documents(self, documents: list[tuple[str, str]]) -> None:
        """Show which documents ride along with the conversation.

        Args:
            documents: (document id, file name) pairs in upload order
        """
        self.remove_docs_menu.clear()
        for document_id, name in documents:
            action = self.remove_docs_menu.addAction(name)
            action.setData(document_id)
        self.remove_docs_button.setVisible(bool(documents))

        names = [name for _, name in documents]
        if names and self._image is None:
            self.attachment_label.setText("Documents: " + ", ".join(names))
            self.attachment_label.show()
        elif self._image is None:
            self.attachment_label.hide()

    def focus_input(self) -> None:
        """Set focus to the input field."""
        self.input_field.setFocus()
