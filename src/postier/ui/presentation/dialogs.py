"""Qt-backed dialogs for the workspace use cases.

Each dialog can be replaced with a plain callable, which keeps the adapters
usable in headless runs and tests.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

try:  # pragma: no cover - PySide6 is optional in headless environments
    from PySide6.QtWidgets import QFileDialog, QInputDialog, QMessageBox

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - headless fallback
    QFileDialog = None  # type: ignore[assignment]
    QInputDialog = None  # type: ignore[assignment]
    QMessageBox = None  # type: ignore[assignment]
    _QT_AVAILABLE = False

from ...editor.tree_model import Collection, DirectoryTree
from ..events import CollectionChoiceRequired, EventBus, NoticePosted

LOGGER = logging.getLogger(__name__)

FOLDER_DIALOG_TITLE = "Select Collection Folder"
DELETE_DIALOG_TITLE = "Delete folder"


class QtDialogProvider:
    """Folder picker, confirmations, prompts and notices.

    Implements ``FolderPicker``, ``ConfirmationProvider`` and
    ``FileNamePrompt``. Call :meth:`attach` to show every
    :class:`NoticePosted` as a message box.
    """

    def __init__(
        self,
        parent: Any = None,
        *,
        choose_folder: Callable[[], str | None] | None = None,
        ask_yes_no: Callable[[str, str], bool] | None = None,
        ask_text: Callable[[str, str, str], str | None] | None = None,
        ask_choice: Callable[[str, str, Sequence[str]], str | None] | None = None,
        show_message: Callable[[str, str, str], None] | None = None,
    ) -> None:
        self._parent = parent
        self._choose_folder = choose_folder
        self._ask_yes_no = ask_yes_no
        self._ask_text = ask_text
        self._ask_choice = ask_choice
        self._show_message = show_message
        self._collections: Callable[[], Sequence[Collection]] | None = None
        self._on_choice: Callable[[str], None] | None = None

    @property
    def qt_available(self) -> bool:
        return _QT_AVAILABLE

    def open_folder_dialog(self) -> str | None:
        if self._choose_folder is not None:
            return self._choose_folder() or None
        if QFileDialog is None:
            LOGGER.debug("Folder picker unavailable without Qt")
            return None
        selected = QFileDialog.getExistingDirectory(self._parent, FOLDER_DIALOG_TITLE)
        return selected or None

    async def confirm_delete(self, node: DirectoryTree) -> bool:
        message = (
            f"Are you sure you want to delete '{node.entry.name}' and everything inside it? "
            "This cannot be undone."
        )
        if self._ask_yes_no is not None:
            return bool(self._ask_yes_no(DELETE_DIALOG_TITLE, message))
        if QMessageBox is None:
            LOGGER.debug("No confirmation dialog available; declining delete of %s", node.path)
            return False
        answer = QMessageBox.question(
            self._parent,
            DELETE_DIALOG_TITLE,
            message,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    def prompt_file_name(self, default: str = "") -> str | None:
        title, label = "Save request", "File name:"
        if self._ask_text is not None:
            return self._ask_text(title, label, default) or None
        if QInputDialog is None:
            return None
        text, accepted = QInputDialog.getText(self._parent, title, label, text=default)
        return text if accepted and text.strip() else None

    def choose_collection(self, collections: Sequence[Collection]) -> Collection | None:
        if not collections:
            return None
        labels = [f"{collection.name} ({collection.path})" for collection in collections]
        title, label = "Select collection", "Several collections are open. Pick the active one:"
        if self._ask_choice is not None:
            picked = self._ask_choice(title, label, labels)
        elif QInputDialog is not None:
            picked, accepted = QInputDialog.getItem(self._parent, title, label, labels, 0, False)
            picked = picked if accepted else None
        else:
            picked = None
        if picked is None or picked not in labels:
            return None
        return collections[labels.index(picked)]

    def show_notice(self, event: NoticePosted) -> None:
        if self._show_message is not None:
            self._show_message(event.title, event.message, event.level)
            return
        if QMessageBox is None:
            LOGGER.info("%s: %s", event.title, event.message)
            return
        if event.level == "error":
            QMessageBox.critical(self._parent, event.title, event.message)
        elif event.level == "warning":
            QMessageBox.warning(self._parent, event.title, event.message)
        else:
            QMessageBox.information(self._parent, event.title, event.message)

    def attach(
        self,
        bus: EventBus,
        *,
        collections: Callable[[], Sequence[Collection]] | None = None,
        on_choice: Callable[[str], None] | None = None,
    ) -> None:
        """Show notices and answer collection-choice prompts published on ``bus``."""

        self._collections = collections
        self._on_choice = on_choice
        bus.subscribe(NoticePosted, self.show_notice)
        bus.subscribe(CollectionChoiceRequired, self._handle_choice_required)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(NoticePosted, self.show_notice)
        bus.unsubscribe(CollectionChoiceRequired, self._handle_choice_required)

    def _handle_choice_required(self, event: CollectionChoiceRequired) -> None:
        if self._collections is None or self._on_choice is None:
            return
        candidates = [item for item in self._collections() if item.id in event.collection_ids]
        picked = self.choose_collection(candidates)
        if picked is not None:
            self._on_choice(picked.id)


__all__ = ["QtDialogProvider", "FOLDER_DIALOG_TITLE"]
