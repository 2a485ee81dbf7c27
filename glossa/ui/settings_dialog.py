"""Credentials dialog: manage provider keys and the active credential."""

from typing import Optional

from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)
from PySide6.QtCore import Qt

from ..config.models import PROVIDERS, ProviderKind
from ..config.themes import theme, metrics
from ..storage.credential_store import ProviderRegistry


class CredentialsDialog(QDialog):
    """Edits the provider registry in place.

    Every change goes straight to the registry, which persists it.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        parent: Optional[QWidget] = None,
    ) -> None:
        """Initialize the dialog.

        Args:
            registry: The registry to edit
            parent: Parent widget
        """
        super().__init__(parent)
        self._registry = registry
        self._setup_ui()
        self._reload()

    def _setup_ui(self) -> None:
        self.setWindowTitle("API Keys")
        self.setMinimumSize(520, 460)
        self.setModal(True)

        layout = QVBoxLayout(self)
        layout.setSpacing(metrics.padding_medium)

        intro = QLabel(
            "Enabled keys are tried in order when the active one fails. "
            "Ollama runs locally and needs no key."
        )
        intro.setWordWrap(True)
        intro.setStyleSheet(f"color: {theme.text_secondary};")
        layout.addWidget(intro)

        self.credential_list = QListWidget()
        self.credential_list.itemChanged.connect(self._on_item_changed)
        self.credential_list.currentItemChanged.connect(self._on_selection_changed)
        layout.addWidget(self.credential_list)

        actions = QHBoxLayout()
        self.activate_button = QPushButton("Set active")
        self.activate_button.clicked.connect(self._on_set_active)
        actions.addWidget(self.activate_button)
        self.remove_button = QPushButton("Remove")
        self.remove_button.setObjectName("secondaryButton")
        self.remove_button.clicked.connect(self._on_remove)
        actions.addWidget(self.remove_button)
        actions.addStretch()
        actions.addWidget(QLabel("Model"))
        self.selected_model_combo = QComboBox()
        self.selected_model_combo.setMinimumWidth(200)
        self.selected_model_combo.setEnabled(False)
        self.selected_model_combo.activated.connect(self._on_model_chosen)
        actions.addWidget(self.selected_model_combo)
        layout.addLayout(actions)

        # Add form
        form = QFormLayout()
        self.provider_combo = QComboBox()
        for kind, spec in PROVIDERS.items():
            self.provider_combo.addItem(spec.display_name, kind)
        self.provider_combo.currentIndexChanged.connect(self._on_provider_changed)
        form.addRow("Provider", self.provider_combo)

        self.key_input = QLineEdit()
        self.key_input.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("API key", self.key_input)

        self.model_combo = QComboBox()
        self.model_combo.setEditable(True)
        form.addRow("Model", self.model_combo)

        self.label_input = QLineEdit()
        self.label_input.setPlaceholderText("Optional")
        form.addRow("Label", self.label_input)
        layout.addLayout(form)

        self.error_label = QLabel()
        self.error_label.setStyleSheet(f"color: {theme.error};")
        self.error_label.hide()
        layout.addWidget(self.error_label)

        buttons = QHBoxLayout()
        buttons.addStretch()
        add_button = QPushButton("Add key")
        add_button.clicked.connect(self._on_add)
        buttons.addWidget(add_button)
        close_button = QPushButton("Done")
        close_button.setObjectName("secondaryButton")
        close_button.clicked.connect(self.accept)
        buttons.addWidget(close_button)
        layout.addLayout(buttons)

        self._on_provider_changed()

    def _selected_kind(self) -> ProviderKind:
        return self.provider_combo.currentData()

    def _on_provider_changed(self) -> None:
        spec = PROVIDERS[self._selected_kind()]
        self.model_combo.clear()
        self.model_combo.addItems(spec.models)
        self.model_combo.setEditText(spec.default_model)
        self.key_input.setEnabled(spec.requires_key)
        self.key_input.setPlaceholderText(spec.key_placeholder)

    def _reload(self) -> None:
        selected_id = self._selected_id()
        active = self._registry.active_credential()
        self.credential_list.blockSignals(True)
        self.credential_list.clear()
        for credential in self._registry.credentials:
            marker = "  (active)" if active is not None and credential.id == active.id else ""
            model = credential.model or "auto"
            item = QListWidgetItem(
                f"{credential.label}  ·  {model}  ·  {credential.masked_key}{marker}"
            )
            item.setData(Qt.ItemDataRole.UserRole, credential.id)
            item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
            item.setCheckState(
                Qt.CheckState.Checked if credential.enabled else Qt.CheckState.Unchecked
            )
            self.credential_list.addItem(item)
            if credential.id == selected_id:
                self.credential_list.setCurrentItem(item)
        self.credential_list.blockSignals(False)
        self._on_selection_changed()

    def _selected_id(self) -> Optional[str]:
        item = self.credential_list.currentItem()
        return item.data(Qt.ItemDataRole.UserRole) if item else None

    def _on_item_changed(self, item: QListWidgetItem) -> None:
        credential = self._registry.get(item.data(Qt.ItemDataRole.UserRole))
        checked = item.checkState() == Qt.CheckState.Checked
        if credential is not None and credential.enabled != checked:
            self._registry.toggle(credential.id)
        self._reload()

    def _on_selection_changed(self, *_args) -> None:
        credential = self._registry.get(self._selected_id() or "")
        self.selected_model_combo.blockSignals(True)
        self.selected_model_combo.clear()
        if credential is not None:
            self.selected_model_combo.addItems(PROVIDERS[credential.provider].models)
            if credential.model and self.selected_model_combo.findText(credential.model) == -1:
                self.selected_model_combo.addItem(credential.model)
            self.selected_model_combo.setCurrentText(credential.model)
        self.selected_model_combo.setEnabled(credential is not None)
        self.selected_model_combo.blockSignals(False)

    def _on_model_chosen(self, index: int) -> None:
        credential_id = self._selected_id()
        if credential_id:
            self._registry.set_model(credential_id, self.selected_model_combo.itemText(index))
            self._reload()

    def _on_set_active(self) -> None:
        credential_id = self._selected_id()
        if credential_id:
            self._registry.set_active(credential_id)
            self._reload()

    def _on_remove(self) -> None:
        credential_id = self._selected_id()
        if credential_id:
            self._registry.remove(credential_id)
            self._reload()

    def _on_add(self) -> None:
        kind = self._selected_kind()
        spec = PROVIDERS[kind]
        api_key = self.key_input.text().strip()
        if spec.requires_key and not api_key:
            self.error_label.setText(f"{spec.display_name} needs an API key.")
            self.error_label.show()
            return

        self.error_label.hide()
        self._registry.add(
            kind,
            api_key=api_key,
            model=self.model_combo.currentText().strip(),
            label=self.label_input.text(),
        )
        self.key_input.clear()
        self.label_input.clear()
        self._reload()
