"""Main application window."""

import asyncio
from typing import Optional, Set

import structlog
from PySide6.QtWidgets import (
    QMainWindow,
    QWidget,
    QHBoxLayout,
    QVBoxLayout,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QStatusBar,
    QFileDialog,
    QInputDialog,
    QLineEdit,
)
from PySide6.QtCore import Qt, QPoint, QTimer
from PySide6.QtGui import QShortcut, QKeySequence

from .annotation_popup import AnnotationPopup
from .chat_panel import ChatPanel
from .input_panel import InputPanel
from .settings_dialog import CredentialsDialog
from ..config.persistence import PersistenceManager
from ..config.settings import settings
from ..config.themes import get_stylesheet, metrics
from ..orchestrator.annotation_engine import (
    AnnotationEngine,
    ClickOutcome,
    DialogueTurn,
    SelectionController,
    seed_prompt,
)
from ..orchestrator.session_manager import SessionState, StreamingSessionManager
from ..storage import ROLE_USER
from ..storage.conversation_store import ConversationStore
from ..storage.credential_store import ProviderRegistry
from ..storage.document_library import DocumentLibrary
from ..utils.document_parser import (
    SUPPORTED_FILTER,
    DocumentParseError,
    format_file_size,
    parse_document,
)


logger = structlog.get_logger()


class MainWindow(QMainWindow):
    """Main application window for Glossa."""

    def __init__(self) -> None:
        """Initialize the main window."""
        super().__init__()
        self._persistence = PersistenceManager()

        self._store = ConversationStore(settings.conversations_path)
        self._store.load()
        self._registry = ProviderRegistry(settings.credentials_path)
        self._registry.load()
        self._registry.import_from_environment()
        self._documents = DocumentLibrary(settings.documents_path)
        self._documents.load()

        self._sessions = StreamingSessionManager(self._store, self._registry, self._documents)
        self._annotations = AnnotationEngine(self._store, self._registry)
        self._selection = SelectionController()

        self._current_id: Optional[str] = None
        self._ask_pos: Optional[QPoint] = None
        self._active_tasks: Set[asyncio.Task] = set()

        # Store changes are saved after a quiet period
        self._save_timer = QTimer(self)
        self._save_timer.setSingleShot(True)
        self._save_timer.setInterval(settings.save_debounce_ms)
        self._save_timer.timeout.connect(self._flush_save)

        self._setup_ui()
        self._setup_shortcuts()

        self._store.subscribe(self._on_store_changed)
        self._sessions.on_state_changed(self._on_state_changed)

        self._restore_state()

    # ==================== UI ====================

    def _setup_ui(self) -> None:
        self.setWindowTitle(settings.window_title)
        self.setMinimumSize(640, 420)
        self.setStyleSheet(get_stylesheet())

        central = QWidget()
        self.setCentralWidget(central)
        layout = QHBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        # Sidebar
        self.sidebar = QWidget()
        self.sidebar.setFixedWidth(240)
        side_layout = QVBoxLayout(self.sidebar)
        side_layout.setContentsMargins(
            metrics.padding_small, metrics.padding_medium,
            metrics.padding_small, metrics.padding_medium,
        )
        new_button = QPushButton("New chat")
        new_button.clicked.connect(self._on_new_chat)
        side_layout.addWidget(new_button)

        self.conversation_list = QListWidget()
        self.conversation_list.itemClicked.connect(self._on_conversation_selected)
        self.conversation_list.itemDoubleClicked.connect(self._on_rename_requested)
        side_layout.addWidget(self.conversation_list)

        delete_button = QPushButton("Delete chat")
        delete_button.setObjectName("secondaryButton")
        delete_button.clicked.connect(self._on_delete_chat)
        side_layout.addWidget(delete_button)

        keys_button = QPushButton("API keys")
        keys_button.setObjectName("secondaryButton")
        keys_button.clicked.connect(self._open_credentials)
        side_layout.addWidget(keys_button)
        layout.addWidget(self.sidebar)

        # Chat column
        column = QWidget()
        column_layout = QVBoxLayout(column)
        column_layout.setContentsMargins(0, 0, 0, 0)
        column_layout.setSpacing(0)

        self.chat_panel = ChatPanel()
        self.chat_panel.message_clicked.connect(self._on_message_clicked)
        self.chat_panel.ask_requested.connect(self._on_ask_requested)
        self.chat_panel.background_clicked.connect(self._on_background_clicked)
        column_layout.addWidget(self.chat_panel)

        self.input_panel = InputPanel()
        self.input_panel.message_submitted.connect(self._on_message_submitted)
        self.input_panel.stop_requested.connect(self._sessions.stop)
        self.input_panel.documents_requested.connect(self._on_documents_requested)
        self.input_panel.document_remove_requested.connect(self._on_document_removed)
        column_layout.addWidget(self.input_panel)
        layout.addWidget(column, stretch=1)

        self.popup = AnnotationPopup(self)
        self.popup.follow_up_submitted.connect(self._on_follow_up)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

    def _setup_shortcuts(self) -> None:
        QShortcut(QKeySequence("Ctrl+N"), self).activated.connect(self._on_new_chat)
        QShortcut(QKeySequence("Escape"), self).activated.connect(self._on_escape)

    def _restore_state(self) -> None:
        prefs = self._persistence.preferences
        window = prefs.window
        self.setGeometry(window.x, window.y, window.width, window.height)
        if window.maximized:
            self.showMaximized()
        self.sidebar.setVisible(prefs.sidebar_visible)

        self._refresh_sidebar()
        last_id = prefs.last_conversation_id
        if last_id and self._store.get(last_id) is not None:
            self._open_conversation(last_id)
        elif self._store.conversations:
            self._open_conversation(self._store.conversations[0].id)

        if not self._registry.has_usable_credential():
            self.status_bar.showMessage("No API key configured. Add one under API keys.")

    # ==================== Task Management ====================

    def _create_task(self, coro, name: str = "") -> asyncio.Task:
        """Create a tracked async task with error reporting."""
        task = asyncio.create_task(coro)
        if name:
            task.set_name(name)
        self._active_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._active_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task_failed", task=task.get_name(), exc_info=exc)
            self.status_bar.showMessage(f"Error: {str(exc)[:200]}", 5000)

    # ==================== Store ====================

    def _on_store_changed(self, conversation_id: Optional[str]) -> None:
        self._save_timer.start()
        self._refresh_sidebar()
        if conversation_id is None or conversation_id == self._current_id:
            self._sync_chat()

    def _sync_chat(self) -> None:
        session = self._sessions.current_session
        self.chat_panel.sync(
            self._store.get(self._current_id) if self._current_id else None,
            session.message_id if session is not None else None,
        )

    def _flush_save(self) -> None:
        try:
            self._store.save()
        except OSError as e:
            logger.exception("conversation_save_failed")
            self.status_bar.showMessage(f"Could not save conversations: {e}", 5000)

    def _refresh_sidebar(self) -> None:
        self.conversation_list.blockSignals(True)
        self.conversation_list.clear()
        for conversation in self._store.conversations:
            item = QListWidgetItem(conversation.title)
            item.setData(Qt.ItemDataRole.UserRole, conversation.id)
            self.conversation_list.addItem(item)
            if conversation.id == self._current_id:
                item.setSelected(True)
        self.conversation_list.blockSignals(False)

    def _open_conversation(self, conversation_id: Optional[str]) -> None:
        self._current_id = conversation_id
        self._selection.dismiss()
        self.popup.hide()
        self._sync_chat()
        self._refresh_sidebar()
        self._show_documents(conversation_id)
        self._persistence.update_last_conversation(conversation_id)

    def _ensure_conversation(self) -> str:
        if self._current_id is None or self._store.get(self._current_id) is None:
            self._open_conversation(self._store.create_conversation().id)
        return self._current_id

    # ==================== Sidebar ====================

    def _on_new_chat(self) -> None:
        if self._sessions.is_streaming:
            return
        self._open_conversation(self._store.create_conversation().id)
        self.input_panel.focus_input()

    def _on_conversation_selected(self, item: QListWidgetItem) -> None:
        self._open_conversation(item.data(Qt.ItemDataRole.UserRole))

    def _on_rename_requested(self, item: QListWidgetItem) -> None:
        conversation_id = item.data(Qt.ItemDataRole.UserRole)
        title, ok = QInputDialog.getText(
            self, "Rename chat", "Title:", QLineEdit.EchoMode.Normal, item.text()
        )
        if ok and title.strip():
            self._store.rename(conversation_id, title.strip())

    def _on_delete_chat(self) -> None:
        if self._current_id is None:
            return
        conversation_id = self._current_id
        session = self._sessions.current_session
        if session is not None and session.conversation_id == conversation_id:
            self._sessions.stop()
        self._documents.drop_conversation(conversation_id)
        self._current_id = None
        self._store.delete_conversation(conversation_id)
        remaining = self._store.conversations
        self._open_conversation(remaining[0].id if remaining else None)

    def _open_credentials(self) -> None:
        CredentialsDialog(self._registry, self).exec()
        if self._registry.has_usable_credential():
            self.status_bar.clearMessage()

    # ==================== Turns ====================

    def _on_message_submitted(self, text: str) -> None:
        if self._sessions.is_streaming:
            return
        conversation_id = self._ensure_conversation()
        image = self.input_panel.take_image()
        self._create_task(
            self._sessions.submit(conversation_id, text, image), name="turn"
        )

    def _on_state_changed(self, state: SessionState) -> None:
        streaming = state == SessionState.STREAMING
        self.input_panel.set_streaming(streaming)
        self._sync_chat()
        if not streaming:
            self.input_panel.focus_input()

    def _on_documents_requested(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Upload documents", "", SUPPORTED_FILTER)
        if not paths:
            return
        conversation_id = self._ensure_conversation()
        for path in paths:
            try:
                document = parse_document(path)
            except DocumentParseError as e:
                self.status_bar.showMessage(str(e), 5000)
                continue
            self._documents.add(conversation_id, document)
            self.status_bar.showMessage(
                f"Added {document.name} ({format_file_size(document.size)})", 3000
            )
        self._show_documents(conversation_id)

    def _on_document_removed(self, document_id: str) -> None:
        if self._current_id is None:
            return
        if self._documents.remove(self._current_id, document_id):
            self.status_bar.showMessage("Document removed", 3000)
        self._show_documents(self._current_id)

    def _show_documents(self, conversation_id: Optional[str]) -> None:
        self.input_panel.show_documents(
            [(d.id, d.name) for d in self._documents.documents_for(conversation_id)]
        )

    # ==================== Annotations ====================

    def _on_message_clicked(
        self, message_id: str, annotation_id: str, selection: str, pos: QPoint
    ) -> None:
        result = self._selection.handle_click(message_id, annotation_id or None, selection)

        if result.outcome == ClickOutcome.REOPEN and self._current_id:
            self.chat_panel.hide_ask_button()
            dialogue = self._annotations.reopen(self._current_id, message_id, annotation_id)
            if dialogue is not None:
                self.popup.show_dialogue(dialogue, near=pos)
        elif result.outcome == ClickOutcome.ASK:
            self._ask_pos = pos
            self.chat_panel.show_ask_button(pos)
        else:
            self.chat_panel.hide_ask_button()

    def _on_background_clicked(self) -> None:
        self._selection.dismiss()
        self.chat_panel.hide_ask_button()

    def _on_escape(self) -> None:
        self._on_background_clicked()
        self.popup.hide()

    def _on_ask_requested(self) -> None:
        pending = self._selection.take_pending()
        self.chat_panel.hide_ask_button()
        if pending is None or self._current_id is None:
            return

        pos = self._ask_pos
        if pos is None:
            pos = self.mapToGlobal(self.rect().center())
        self.popup.show_loading(DialogueTurn(ROLE_USER, seed_prompt(pending.text)), pos)
        self._create_task(
            self._explain(self._current_id, pending.message_id, pending.text),
            name="explain",
        )

    async def _explain(self, conversation_id: str, message_id: str, text: str) -> None:
        dialogue = await self._annotations.explain_selection(conversation_id, message_id, text)
        self.popup.show_dialogue(dialogue)

    def _on_follow_up(self, question: str) -> None:
        dialogue = self.popup.dialogue
        if dialogue is None:
            return
        self._create_task(self._follow_up(question), name="follow_up")

    async def _follow_up(self, question: str) -> None:
        dialogue = self.popup.dialogue
        task = asyncio.ensure_future(self._annotations.ask_follow_up(dialogue, question))
        # Let the question and busy marker show before the answer arrives
        await asyncio.sleep(0)
        self.popup.refresh()
        await task
        if self.popup.dialogue is dialogue:
            self.popup.refresh()

    # ==================== Shutdown ====================

    def closeEvent(self, event) -> None:
        """Save state and stop background work."""
        self._sessions.stop()
        for task in list(self._active_tasks):
            task.cancel()

        self._save_timer.stop()
        self._flush_save()

        geometry = self.normalGeometry()
        self._persistence.update_window_state(
            geometry.x(), geometry.y(), geometry.width(), geometry.height(),
            self.isMaximized(),
        )
        self._persistence.update_sidebar_visible(self.sidebar.isVisible())

        super().closeEvent(event)
