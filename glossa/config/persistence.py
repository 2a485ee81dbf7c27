"""UI preference persistence.

Saves and loads window state and the last open conversation to
~/.glossa/config.json.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import settings
from ..storage.json_file import load_json, save_json


@dataclass
class WindowState:
    """Window position and size state."""

    x: int = 100
    y: int = 100
    width: int = settings.window_width
    height: int = settings.window_height
    maximized: bool = False


@dataclass
class UserPreferences:
    """User preferences that persist between sessions."""

    window: WindowState = field(default_factory=WindowState)
    last_conversation_id: Optional[str] = None
    sidebar_visible: bool = True


class PersistenceManager:
    """Manages saving and loading user preferences."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """Initialize the persistence manager.

        Args:
            config_path: Path to config file, defaults to ~/.glossa/config.json
        """
        self._config_path = config_path or settings.preferences_path
        self._preferences: Optional[UserPreferences] = None

    @property
    def preferences(self) -> UserPreferences:
        """Get current preferences, loading from disk if needed."""
        if self._preferences is None:
            self._preferences = self.load()
        return self._preferences

    def load(self) -> UserPreferences:
        """Load preferences from disk.

        Returns:
            UserPreferences instance (defaults if the file is missing or bad)
        """
        data = load_json(self._config_path, default=dict)
        if not isinstance(data, dict):
            return UserPreferences()
        try:
            return self._dict_to_preferences(data)
        except (TypeError, ValueError, AttributeError):
            return UserPreferences()

    def save(self, preferences: Optional[UserPreferences] = None) -> None:
        """Save preferences to disk.

        Args:
            preferences: Preferences to save, or current if None
        """
        if preferences is not None:
            self._preferences = preferences
        if self._preferences is None:
            return
        save_json(self._config_path, self._preferences_to_dict(self._preferences))

    def update_window_state(
        self,
        x: int,
        y: int,
        width: int,
        height: int,
        maximized: bool = False,
    ) -> None:
        """Update window state and save."""
        self.preferences.window = WindowState(x, y, width, height, maximized)
        self.save()

    def update_last_conversation(self, conversation_id: Optional[str]) -> None:
        """Remember the conversation to reopen at start-up."""
        self.preferences.last_conversation_id = conversation_id
        self.save()

    def update_sidebar_visible(self, visible: bool) -> None:
        """Update sidebar visibility and save."""
        self.preferences.sidebar_visible = visible
        self.save()

    @staticmethod
    def _preferences_to_dict(prefs: UserPreferences) -> Dict[str, Any]:
        return {
            "window": {
                "x": prefs.window.x,
                "y": prefs.window.y,
                "width": prefs.window.width,
                "height": prefs.window.height,
                "maximized": prefs.window.maximized,
            },
            "last_conversation_id": prefs.last_conversation_id,
            "sidebar_visible": prefs.sidebar_visible,
        }

    @staticmethod
    def _dict_to_preferences(data: Dict[str, Any]) -> UserPreferences:
        window_data = data.get("window") or {}
        defaults = WindowState()
        window = WindowState(
            x=int(window_data.get("x", defaults.x)),
            y=int(window_data.get("y", defaults.y)),
            width=int(window_data.get("width", defaults.width)),
            height=int(window_data.get("height", defaults.height)),
            maximized=bool(window_data.get("maximized", False)),
        )

        last_id = data.get("last_conversation_id")
        return UserPreferences(
            window=window,
            last_conversation_id=last_id if isinstance(last_id, str) else None,
            sidebar_visible=bool(data.get("sidebar_visible", True)),
        )
