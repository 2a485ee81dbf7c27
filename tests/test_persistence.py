"""Tests for UI preference persistence."""

import json

from glossa.config.persistence import PersistenceManager, UserPreferences


def test_defaults_when_missing(tmp_path):
    manager = PersistenceManager(tmp_path / "config.json")

    assert manager.preferences == UserPreferences()


def test_updates_are_saved(tmp_path):
    path = tmp_path / "config.json"
    manager = PersistenceManager(path)

    manager.update_window_state(10, 20, 800, 600, maximized=True)
    manager.update_last_conversation("c1")
    manager.update_sidebar_visible(False)

    reloaded = PersistenceManager(path).preferences
    assert (reloaded.window.x, reloaded.window.width, reloaded.window.maximized) == (10, 800, True)
    assert reloaded.last_conversation_id == "c1"
    assert reloaded.sidebar_visible is False


def test_bad_values_fall_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"window": {"x": "left"}, "last_conversation_id": 5}), encoding="utf-8")

    assert PersistenceManager(path).preferences == UserPreferences()
