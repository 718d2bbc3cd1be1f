from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from .config import SETTINGS_FILE, EngineSettings
from .event_engine import AdSuppressionEngine

Response = Dict[str, Any]


class AdBlockerController:
    """Glue between the engine and the surrounding extension.

    Reads the persisted preference at page load and relays panel/remote
    actions into engine calls. The engine itself never touches storage.
    """

    def __init__(
        self,
        engine: AdSuppressionEngine,
        settings: EngineSettings,
        logger: logging.Logger,
        settings_path: str = SETTINGS_FILE,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self.settings_path = settings_path
        self.logger = logger.getChild("AdBlockerController")
        self._handlers: Dict[str, Callable[[], Response]] = {
            "toggle_adblocker": self.toggle_blocking,
            "enable_adblocker": lambda: self.set_blocking(True),
            "disable_adblocker": lambda: self.set_blocking(False),
            "get_adblocker_status": self.status,
            "toggle_pause": self.toggle_pause,
        }

    def on_page_load(self) -> bool:
        if self.settings.enabled:
            self.engine.enable()
        return self.engine.is_enabled()

    def handle_message(self, request: Union[str, Dict[str, Any]]) -> Optional[Response]:
        action = request.get("action") if isinstance(request, dict) else request
        handler = self._handlers.get(action or "")
        if handler is None:
            self.logger.debug("Ignoring unknown action %r", action)
            return None
        return handler()

    def status(self) -> Response:
        return {"enabled": self.engine.is_enabled(), "hiddenCount": self.engine.get_hidden_count()}

    def _save_setting_attr(self, attr_name: str, new_value: Any) -> bool:
        previous = getattr(self.settings, attr_name)
        setattr(self.settings, attr_name, new_value)
        try:
            self.settings.save(self.settings_path)
            return True
        except OSError:
            setattr(self.settings, attr_name, previous)
            self.logger.warning("Failed to save setting '%s'; rolled back", attr_name)
            return False

    def set_blocking(self, enabled: bool) -> Response:
        if not self._save_setting_attr("enabled", bool(enabled)):
            return self.status()
        if enabled:
            self.engine.enable()
        else:
            self.engine.disable()
        self.logger.info("Blocking set: %s", "ON" if enabled else "OFF")
        return self.status()

    def toggle_blocking(self) -> Response:
        return self.set_blocking(not self.engine.is_enabled())

    def toggle_pause(self) -> Response:
        if self.engine.is_animation_paused():
            self.engine.resume_animations()
        else:
            self.engine.pause_animations()
        return {"paused": self.engine.is_animation_paused()}

    def status_text(self) -> str:
        state = self.engine.state
        mode = "ON" if state.enabled else "OFF"
        sweep_text = "-"
        if state.last_sweep > 0:
            sweep_text = datetime.fromtimestamp(state.last_sweep).strftime("%H:%M:%S")
        base = f"Ad blocker: {mode} | hidden {state.hidden_count} | resized {state.repaired_count}"
        if state.animations_paused:
            base = f"{base} | paused"
        if state.last_error:
            compact_error = state.last_error if len(state.last_error) <= 80 else f"{state.last_error[:77]}..."
            return f"{base} | error {sweep_text} {compact_error}"
        return f"{base} | last sweep {sweep_text}"


__all__ = ["AdBlockerController"]
