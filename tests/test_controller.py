import json
import logging
from pathlib import Path

from page_adblocker.config import EngineSettings
from page_adblocker.controller import AdBlockerController


class FakeEngine:
    def __init__(self):
        self.enabled = False
        self.paused = False
        self.enable_calls = 0
        self.disable_calls = 0
        self._state = type(
            "S",
            (),
            {
                "enabled": False,
                "hidden_count": 4,
                "repaired_count": 1,
                "animations_paused": False,
                "last_sweep": 0.0,
                "last_error": "",
            },
        )()

    @property
    def state(self):
        self._state.enabled = self.enabled
        self._state.animations_paused = self.paused
        return self._state

    def enable(self):
        self.enable_calls += 1
        self.enabled = True

    def disable(self):
        self.disable_calls += 1
        self.enabled = False

    def is_enabled(self):
        return self.enabled

    def get_hidden_count(self):
        return 4 if self.enabled else 0

    def pause_animations(self):
        self.paused = True

    def resume_animations(self):
        self.paused = False

    def is_animation_paused(self):
        return self.paused


def _controller(tmp_path: Path, **settings_kwargs):
    engine = FakeEngine()
    settings = EngineSettings(**settings_kwargs)
    path = tmp_path / "settings.json"
    controller = AdBlockerController(engine, settings, logging.getLogger("test"), settings_path=str(path))
    return controller, engine, settings, path


def test_page_load_follows_persisted_preference(tmp_path: Path):
    controller, engine, _settings, _path = _controller(tmp_path)
    assert controller.on_page_load() is True
    assert engine.enable_calls == 1

    controller, engine, _settings, _path = _controller(tmp_path, enabled=False)
    assert controller.on_page_load() is False
    assert engine.enable_calls == 0


def test_toggle_message_persists_and_reports(tmp_path: Path):
    controller, engine, settings, path = _controller(tmp_path)
    controller.on_page_load()

    response = controller.handle_message({"action": "toggle_adblocker"})
    assert response == {"enabled": False, "hiddenCount": 0}
    assert settings.enabled is False
    assert json.loads(path.read_text(encoding="utf-8"))["enabled"] is False

    response = controller.handle_message("toggle_adblocker")
    assert response == {"enabled": True, "hiddenCount": 4}
    assert engine.enable_calls == 2


def test_explicit_enable_disable_and_status(tmp_path: Path):
    controller, engine, _settings, _path = _controller(tmp_path, enabled=False)

    assert controller.handle_message({"action": "enable_adblocker"}) == {"enabled": True, "hiddenCount": 4}
    assert controller.handle_message({"action": "get_adblocker_status"}) == {"enabled": True, "hiddenCount": 4}
    assert controller.handle_message({"action": "disable_adblocker"}) == {"enabled": False, "hiddenCount": 0}
    assert engine.disable_calls == 1


def test_save_failure_rolls_back_and_leaves_engine_alone(tmp_path: Path, monkeypatch):
    controller, engine, settings, _path = _controller(tmp_path)
    controller.on_page_load()

    def fail_save(_self, _path=None):
        raise OSError("disk full")

    monkeypatch.setattr(EngineSettings, "save", fail_save)
    response = controller.handle_message({"action": "disable_adblocker"})
    assert response == {"enabled": True, "hiddenCount": 4}
    assert settings.enabled is True
    assert engine.disable_calls == 0


def test_toggle_pause_message(tmp_path: Path):
    controller, engine, _settings, _path = _controller(tmp_path)
    assert controller.handle_message({"action": "toggle_pause"}) == {"paused": True}
    assert controller.handle_message({"action": "toggle_pause"}) == {"paused": False}
    assert engine.enable_calls == 0


def test_unknown_actions_return_none(tmp_path: Path):
    controller, _engine, _settings, _path = _controller(tmp_path)
    assert controller.handle_message({"action": "summarize_page"}) is None
    assert controller.handle_message({}) is None
    assert controller.handle_message("") is None


def test_status_text(tmp_path: Path):
    controller, engine, _settings, _path = _controller(tmp_path)
    controller.on_page_load()
    text = controller.status_text()
    assert "Ad blocker: ON" in text
    assert "hidden 4" in text
    assert "last sweep -" in text

    engine._state.last_error = "periodic: RuntimeError: " + "x" * 200
    text = controller.status_text()
    assert "error" in text
    assert text.endswith("...")
