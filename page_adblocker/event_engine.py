from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .config import APPDATA_DIR, EngineSettings, SuppressionRules
from .dom import EVENT_KINDS, Document, MutationRecord, Stylesheet, VisualElement
from .errors import StaleElementError, TriggerError
from .geometry import GeometryClassifier
from .layout_engine import LayoutEngine
from .patterns import PatternMatcher, is_excluded, is_exclusion_root
from .scheduling import Cancellable, ManualScheduler, Scheduler
from .snapshot import document_to_dict
from .suppression import HIDE_DECLARATIONS, SuppressionApplier
from .text_signals import TextSignalClassifier

OVERRIDE_SHEET_ID = "page-adblocker-overrides"
PAUSE_SHEET_ID = "page-adblocker-pause"
PAUSE_DECLARATIONS = {
    "animation-play-state": "paused !important",
    "transition": "none !important",
}


@dataclass
class EngineState:
    enabled: bool = False
    hidden_count: int = 0
    repaired_count: int = 0
    sweep_count: int = 0
    events_received: int = 0
    events_coalesced: int = 0
    animations_paused: bool = False
    last_sweep: float = 0.0
    last_error: str = ""


class AdSuppressionEngine:
    """Owns the suppression lifecycle for one document.

    Single-threaded: every trigger runs on the scheduler's thread, so
    sweeps never overlap. ``disable()`` is the only cancellation path.
    """

    def __init__(
        self,
        document: Document,
        logger: logging.Logger,
        settings: Optional[EngineSettings] = None,
        rules: Optional[SuppressionRules] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.document = document
        self.logger = logger.getChild("AdSuppressionEngine")
        self.settings = settings or EngineSettings()
        self.rules = rules or SuppressionRules()
        # Pass an asyncio loop for wall-clock timers.
        self.scheduler: Scheduler = scheduler if scheduler is not None else ManualScheduler()
        self._clock = clock

        self.patterns = PatternMatcher(self.rules.selectors, self.logger.getChild("Patterns"))
        self.geometry = GeometryClassifier(document, self.rules, self.logger.getChild("Geometry"))
        self.text = TextSignalClassifier(document, self.rules, self.logger.getChild("Text"))
        self.applier = SuppressionApplier(
            document,
            self.rules,
            self.logger.getChild("Suppression"),
            is_enabled=self.is_enabled,
            on_suppressed=self._count_suppressed,
        )
        self.layout = LayoutEngine(document, self.rules, self.logger.getChild("Layout"), self.applier)

        self._state = EngineState()
        self._handles: Dict[int, Cancellable] = {}
        self._debounce: Optional[Cancellable] = None
        self._last_log: Dict[str, float] = {}

    # public contract

    @property
    def state(self) -> EngineState:
        return replace(self._state)

    def is_enabled(self) -> bool:
        return self._state.enabled

    def get_hidden_count(self) -> int:
        return self._state.hidden_count

    def enable(self) -> None:
        if self._state.enabled:
            return
        self._state.enabled = True
        self.document.add_stylesheet(
            Stylesheet(OVERRIDE_SHEET_ID, dict(HIDE_DECLARATIONS), matcher=self.applier.is_marked)
        )

        self._run_trigger("initial", self.sweep)
        for delay_ms in self.settings.rescan_delays_ms:
            self._schedule_once(delay_ms / 1000.0, "delayed", self.sweep)
        self._schedule_periodic()
        self._track(self.document.observe(self._on_mutations))
        for kind in EVENT_KINDS:
            self._track(self.document.add_listener(kind, self._on_viewport_event))
        self.logger.info("Ad blocker enabled (hidden=%d)", self._state.hidden_count)

    def disable(self) -> None:
        if not self._state.enabled:
            return
        self._state.enabled = False
        self._cancel_all()
        self.document.remove_stylesheet(OVERRIDE_SHEET_ID)

        restored = 0
        if self.settings.restore_on_disable:
            restored = self.applier.restore_all() + self.layout.restore_all()
        self.applier.reset()
        self.layout.reset()
        self._state.hidden_count = 0
        self._state.repaired_count = 0
        self.logger.info("Ad blocker disabled (restored=%d)", restored)

    def toggle(self) -> bool:
        if self._state.enabled:
            self.disable()
        else:
            self.enable()
        return self._state.enabled

    def pause_animations(self) -> None:
        self.document.add_stylesheet(
            Stylesheet(PAUSE_SHEET_ID, dict(PAUSE_DECLARATIONS), matcher=lambda el: not is_excluded(el, self.rules))
        )
        self._state.animations_paused = True
        self.logger.info("Animations paused")

    def resume_animations(self) -> None:
        self.document.remove_stylesheet(PAUSE_SHEET_ID)
        self._state.animations_paused = False
        self.logger.info("Animations resumed")

    def is_animation_paused(self) -> bool:
        return self.document.has_stylesheet(PAUSE_SHEET_ID)

    def report_warning(self, message: str) -> None:
        if not message:
            return
        self._state.last_error = message

    # sweeps

    def sweep(self) -> int:
        """Full sweep: pattern, geometry and text over the whole tree, then repair."""
        if not self._state.enabled:
            return 0
        hidden = self._classify_tree(self.document.root, full=True)
        for element in self.applier.marked_elements(connected_only=True):
            self.applier.reassert(element)
        self._finish_sweep()
        return hidden

    def sweep_subtrees(self, roots: Iterable[VisualElement]) -> int:
        if not self._state.enabled:
            return 0
        hidden = 0
        for root in roots:
            if not root.is_connected or is_excluded(root, self.rules):
                continue
            hidden += self._classify_tree(root, full=True)
        self._finish_sweep()
        return hidden

    def geometry_sweep(self) -> int:
        """Viewport-driven sweep; pattern and text signals do not depend on the viewport."""
        if not self._state.enabled:
            return 0
        hidden = self._classify_tree(self.document.root, full=False)
        self._finish_sweep()
        return hidden

    def _classify_tree(self, root: VisualElement, full: bool) -> int:
        hidden = 0
        stack: List[VisualElement] = [root]
        while stack and self._state.enabled:
            node = stack.pop()
            if self.applier.is_marked(node) or is_exclusion_root(node, self.rules):
                continue
            try:
                reason = self._classify(node, full)
                if reason:
                    hidden += self.applier.suppress(node, reason)
            except StaleElementError as exc:
                self.logger.debug("Skipping stale element: %s", exc)
                if not node.is_connected:
                    continue
            except Exception as exc:
                self.logger.debug("Classification failed for %r (%s: %s)", node, exc.__class__.__name__, exc)
            if self.applier.is_marked(node):
                continue
            stack.extend(reversed(node.children))
        return hidden

    def _classify(self, node: VisualElement, full: bool) -> Optional[str]:
        if full:
            pattern = self.patterns.matching_pattern(node)
            if pattern is not None:
                return f"pattern:{pattern.selector}"
        reason = self.geometry.classify(node)
        if reason:
            return f"geometry:{reason}"
        if full:
            reason = self.text.classify(node)
            if reason:
                return f"text:{reason}"
        return None

    def _finish_sweep(self) -> None:
        if self.settings.layout_repair and self._state.enabled:
            try:
                self.layout.repair()
            except Exception as exc:
                self.logger.debug("Layout repair failed (%s: %s)", exc.__class__.__name__, exc)
        self._state.repaired_count = self.layout.repaired_count
        self._state.sweep_count += 1
        self._state.last_sweep = self._clock()

    def _count_suppressed(self, _element: VisualElement, _reason: str) -> None:
        self._state.hidden_count += 1

    # triggers

    def _run_trigger(self, name: str, fn: Callable[[], object]) -> None:
        if not self._state.enabled:
            return
        try:
            fn()
        except Exception as exc:
            self._set_error(str(TriggerError(name, exc)))

    def _track(self, handle: Cancellable) -> Cancellable:
        self._handles[id(handle)] = handle
        return handle

    def _forget(self, handle: Optional[Cancellable]) -> None:
        if handle is not None:
            self._handles.pop(id(handle), None)

    def _schedule_once(self, delay: float, name: str, fn: Callable[[], object]) -> Cancellable:
        def fire() -> None:
            self._forget(handle)
            self._run_trigger(name, fn)

        handle = self.scheduler.call_later(delay, fire)
        return self._track(handle)

    def _schedule_periodic(self) -> None:
        def tick() -> None:
            self._forget(handle)
            self._run_trigger("periodic", self.sweep)
            if self._state.enabled:
                self._schedule_periodic()

        handle = self.scheduler.call_later(self.settings.periodic_interval_ms / 1000.0, tick)
        self._track(handle)

    def _on_mutations(self, records: List[MutationRecord]) -> None:
        if not self._state.enabled:
            return
        added = [node for record in records for node in record.added_nodes]
        if added:
            self._run_trigger("mutation", lambda: self.sweep_subtrees(added))

    def _on_viewport_event(self) -> None:
        if not self._state.enabled:
            return
        self._state.events_received += 1
        if self._debounce is not None:
            self._debounce.cancel()
            self._forget(self._debounce)
            self._state.events_coalesced += 1

        def fire() -> None:
            self._forget(handle)
            self._debounce = None
            self._run_trigger("viewport", self.geometry_sweep)

        handle = self.scheduler.call_later(self.settings.debounce_ms / 1000.0, fire)
        self._debounce = self._track(handle)

    def _cancel_all(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        self._debounce = None
        for handle in handles:
            try:
                handle.cancel()
            except Exception as exc:
                self.logger.warning("Failed to cancel %r (%s)", handle, exc.__class__.__name__)

    @property
    def active_handle_count(self) -> int:
        return len(self._handles)

    def _set_error(self, message: str) -> None:
        now = self._clock()
        last = self._last_log.get(message, 0.0)
        if now - last >= self.rules.log_rate_limit_seconds:
            self._last_log[message] = now
            self.logger.error(message)
        self._state.last_error = message

    # diagnostics

    def dump_tree(self, out_dir: Optional[str] = None) -> str:
        def annotate(element: VisualElement) -> Dict[str, object]:
            return {
                "uid": element.uid,
                "suppressed": self.applier.is_marked(element),
                "repaired": self.layout.is_repaired(element),
                "rendered": self.document.is_rendered(element),
            }

        data = {
            "timestamp": datetime.now().isoformat(),
            "enabled": self._state.enabled,
            "hidden_count": self._state.hidden_count,
            "repaired_count": self._state.repaired_count,
            "document": document_to_dict(self.document, annotate),
        }
        dump_dir = out_dir or APPDATA_DIR
        os.makedirs(dump_dir, exist_ok=True)
        path = os.path.join(dump_dir, f"tree_dump_{datetime.now().strftime('%Y%m%d-%H%M%S-%f')}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return path


__all__ = ["AdSuppressionEngine", "EngineState", "OVERRIDE_SHEET_ID", "PAUSE_SHEET_ID"]
