from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from .config import SuppressionRules
from .dom import Document, Rect, VisualElement
from .patterns import has_ad_marker, identity_text, is_excluded

MAX_CASCADE_DEPTH = 1
FLEX_DISPLAYS = ("flex", "inline-flex", "grid", "inline-grid")

HIDE_DECLARATIONS: Dict[str, str] = {
    "display": "none !important",
    "visibility": "hidden !important",
    "width": "0 !important",
    "height": "0 !important",
    "min-width": "0 !important",
    "min-height": "0 !important",
    "max-width": "0 !important",
    "max-height": "0 !important",
    "margin": "0 !important",
    "padding": "0 !important",
    "overflow": "hidden !important",
    "pointer-events": "none !important",
    "z-index": "-9999 !important",
}


@dataclass
class OverrideSnapshot:
    """Inline values an override replaced; ``None`` means the property was unset."""

    element: VisualElement
    inline: Dict[str, Optional[str]] = field(default_factory=dict)
    rect: Optional[Rect] = None

    @classmethod
    def capture(cls, element: VisualElement, props) -> "OverrideSnapshot":
        return cls(element=element, inline={p: element.inline.get(p) for p in props}, rect=element.rect)

    def restore(self) -> None:
        for prop, value in self.inline.items():
            if value is None:
                self.element.remove_inline(prop)
            else:
                self.element.set_inline(prop, value)


class SuppressionApplier:
    def __init__(
        self,
        document: Document,
        rules: SuppressionRules,
        logger: logging.Logger,
        is_enabled: Callable[[], bool],
        on_suppressed: Optional[Callable[[VisualElement, str], None]] = None,
    ) -> None:
        self.document = document
        self.rules = rules
        self.logger = logger
        self._is_enabled = is_enabled
        self._on_suppressed = on_suppressed
        self.marks: Set[int] = set()
        self._suppressing: Set[int] = set()
        self._snapshots: Dict[int, OverrideSnapshot] = {}
        self._protected_tags = frozenset(t.lower() for t in rules.protected_tags)

    def is_marked(self, element: VisualElement) -> bool:
        return element.uid in self.marks

    def is_suppressed_or_inside(self, element: VisualElement) -> bool:
        return element.closest(lambda n: n.uid in self.marks) is not None

    def snapshot_rect(self, element: VisualElement) -> Optional[Rect]:
        """Geometry the element had before it was suppressed."""
        snap = self._snapshots.get(element.uid)
        return snap.rect if snap else None

    def can_suppress(self, element: VisualElement) -> bool:
        if element.tag in self._protected_tags:
            return False
        return not is_excluded(element, self.rules)

    def suppress(self, element: VisualElement, reason: str = "", cascade: bool = True, depth: int = 0) -> int:
        """Suppress ``element`` once and cascade; returns how many elements were newly suppressed."""
        if not self._is_enabled():
            return 0
        uid = element.uid
        if uid in self.marks or uid in self._suppressing:
            return 0
        if not element.is_connected or not self.can_suppress(element):
            return 0

        self._suppressing.add(uid)
        try:
            self.marks.add(uid)
            self._snapshots[uid] = OverrideSnapshot.capture(element, HIDE_DECLARATIONS)
            self._apply_override(element)
            if self._on_suppressed is not None:
                self._on_suppressed(element, reason)
            self.logger.debug("Suppressed %r (%s)", element, reason or "unspecified")
            count = 1
            if cascade:
                count += self._cascade_siblings(element)
                parent = element.parent
                if depth < MAX_CASCADE_DEPTH and parent is not None and self.should_cascade_to_parent(parent, element):
                    count += self.suppress(parent, reason="cascade:parent", cascade=True, depth=depth + 1)
            return count
        finally:
            self._suppressing.discard(uid)

    def _apply_override(self, element: VisualElement) -> None:
        for prop, value in HIDE_DECLARATIONS.items():
            element.set_inline(prop, value)

    def should_cascade_to_parent(self, parent: VisualElement, child: VisualElement) -> bool:
        if parent.uid in self.marks or not self.can_suppress(parent):
            return False
        visible_others = [
            c for c in parent.children if c is not child and c.uid not in self.marks and self.document.is_rendered(c)
        ]
        if not visible_others and not parent.text.strip():
            return True
        display = self.document.resolve_style(parent, "display")
        if len(parent.children) == 1 and display in FLEX_DISPLAYS:
            return True
        if has_ad_marker(parent, self.rules):
            return True
        return parent.rect is not None and parent.rect.height < self.rules.parent_near_zero_height_px

    def _cascade_siblings(self, element: VisualElement) -> int:
        count = 0
        for sibling in element.siblings():
            if sibling.uid in self.marks or not self.document.is_rendered(sibling):
                continue
            if self.is_loader(sibling):
                count += self.suppress(sibling, reason="cascade:loader", cascade=False)
        return count

    def is_loader(self, element: VisualElement) -> bool:
        ident = identity_text(element).lower()
        if any(token in ident for token in self.rules.loader_tokens):
            return True
        animation = self.document.resolve_style(element, "animation-name", "none")
        if animation in ("", "none"):
            return False
        return self._is_circular(element)

    def _is_circular(self, element: VisualElement) -> bool:
        radius = self.document.resolve_style(element, "border-radius").strip()
        if not radius:
            return False
        try:
            if radius.endswith("%"):
                return float(radius[:-1]) >= 50
            if radius.endswith("px"):
                rect = element.rect
                return rect is not None and float(radius[:-2]) >= min(rect.width, rect.height) / 2
        except ValueError:
            return False
        return False

    def reassert(self, element: VisualElement) -> bool:
        """Re-apply the override when the host stripped it; never counts."""
        if element.uid not in self.marks or not element.is_connected:
            return False
        if all(element.inline.get(p) == v for p, v in HIDE_DECLARATIONS.items()):
            return False
        self._apply_override(element)
        self.logger.debug("Re-asserted override on %r", element)
        return True

    def marked_elements(self, connected_only: bool = False) -> List[VisualElement]:
        elements = [snap.element for snap in self._snapshots.values()]
        if connected_only:
            return [el for el in elements if el.is_connected]
        return elements

    def restore_all(self) -> int:
        # Detached nodes are restored too: the host may re-insert them later.
        snapshots = list(self._snapshots.values())
        self._snapshots.clear()
        for snap in snapshots:
            snap.restore()
        return len(snapshots)

    def reset(self) -> None:
        self.marks.clear()
        self._suppressing.clear()
        self._snapshots.clear()


__all__ = ["SuppressionApplier", "OverrideSnapshot", "HIDE_DECLARATIONS", "MAX_CASCADE_DEPTH"]
